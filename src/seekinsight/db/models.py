"""
数据库层数据结构

与前端约定的 JSON 字段使用 camelCase (tableName / rowCount)。
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class Column:
    """列元数据"""
    name: str
    type: str
    comment: str = ""

    def to_dict(self) -> dict:
        return {"name": self.name, "type": self.type, "comment": self.comment}


@dataclass
class TableMetadata:
    """表元数据，row_count = -1 表示尚未统计"""
    table_name: str
    columns: list[Column] = field(default_factory=list)
    row_count: int = -1

    @property
    def id(self) -> str:
        return self.table_name

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tableName": self.table_name,
            "columns": [c.to_dict() for c in self.columns],
            "rowCount": self.row_count,
        }


@dataclass
class StatementOutcome:
    """
    单条语句的驱动层执行结果

    columns 为 None 表示没有字段描述 (DML/DDL)，应合成状态行。
    """
    columns: Optional[list[str]] = None
    rows: list[dict[str, Any]] = field(default_factory=list)
    affected_rows: Optional[int] = 0
    insert_id: Optional[int] = 0
    warning_count: int = 0
    message: Optional[str] = None
    command: Optional[str] = None

    @property
    def is_status(self) -> bool:
        return self.columns is None


@dataclass
class QueryResult:
    """规范化查询结果: 数据结果或单行状态结果"""
    rows: list[dict[str, Any]] = field(default_factory=list)
    columns: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"rows": self.rows, "columns": self.columns}


__all__ = ["Column", "TableMetadata", "StatementOutcome", "QueryResult"]
