"""
SQL 方言抽象

每种数据库引擎 (MySQL / PostgreSQL) 实现一个 SqlDialect 子类，
集中处理连接池、结果规范化、Schema 内省、连接串拼装、克隆与删除。
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, Sequence

import structlog
from sqlalchemy.engine import URL, make_url

from ..config.settings import Settings
from .models import Column, QueryResult, StatementOutcome, TableMetadata

logger = structlog.get_logger(__name__)

# 以此前缀开头的表视为系统表，不对用户展示
RESERVED_TABLE_PREFIX = "__"


def is_uri(identifier: str) -> bool:
    """数据库标识是否为完整连接 URI (外部库)"""
    return "://" in identifier


def group_catalog_rows(rows: Iterable[dict]) -> list[TableMetadata]:
    """
    将 (table_name, column_name, data_type, column_comment) 行按表聚合

    行需按表名、列序号排好序；没有列的表 column_name 为 None。
    """
    tables: dict[str, TableMetadata] = {}
    for row in rows:
        name = row["table_name"]
        table = tables.get(name)
        if table is None:
            table = tables[name] = TableMetadata(table_name=name)
        if row.get("column_name") is None:
            continue
        table.columns.append(
            Column(
                name=row["column_name"],
                type=str(row.get("data_type") or "").upper(),
                comment=row.get("column_comment") or "",
            )
        )
    return list(tables.values())


class SqlDialect(ABC):
    """SQL 方言抽象基类"""

    name: str = ""
    # 合成状态行的固定列顺序
    status_columns: tuple[str, ...] = ()
    # SQLAlchemy 驱动名 (供 Python 子进程使用的同步驱动)
    sync_drivername: str = ""
    # 引擎自带的系统库，永远不允许删除
    engine_databases: frozenset[str] = frozenset()

    def __init__(self, settings: Settings):
        self.settings = settings

    # ============================================
    # 标识符与参数
    # ============================================
    @abstractmethod
    def quote(self, name: str) -> str:
        """引用标识符"""

    @abstractmethod
    def placeholder(self, index: int) -> str:
        """第 index 个 (从 1 开始) 绑定参数占位符"""

    def bind(self, sql: str) -> str:
        """将内部 SQL 中的 ? 占位符替换为驱动占位符"""
        parts = sql.split("?")
        out = [parts[0]]
        for i, part in enumerate(parts[1:], start=1):
            out.append(self.placeholder(i))
            out.append(part)
        return "".join(out)

    def is_protected(self, name: str) -> bool:
        """系统库、示例主库、演示库及引擎内置库不可删除"""
        protected = {
            self.settings.system_database,
            self.settings.master_database,
            self.settings.demo_database,
        }
        return name in protected or name in self.engine_databases

    # ============================================
    # 连接参数
    # ============================================
    @abstractmethod
    def default_port(self) -> int:
        """默认端口"""

    @abstractmethod
    def server_credentials(self) -> dict[str, Any]:
        """从配置读取服务器连接参数 (host/port/user/password)"""

    def connect_params(self, identifier: str) -> dict[str, Any]:
        """
        解析连接参数

        URI 标识由 make_url 解析 (用户名/密码自动做百分号解码)，
        裸库名使用配置中的服务器参数。
        """
        if is_uri(identifier):
            url = make_url(identifier)
            return {
                "host": url.host or "127.0.0.1",
                "port": url.port or self.default_port(),
                "user": url.username or "",
                "password": url.password or "",
                "database": url.database or "",
            }
        params = self.server_credentials()
        params["database"] = identifier
        return params

    def build_connection_string(self, identifier: str) -> str:
        """为 Python 子进程拼装 SQLAlchemy 连接串 (凭证百分号编码)"""
        if is_uri(identifier):
            url = make_url(identifier).set(drivername=self.sync_drivername)
        else:
            params = self.connect_params(identifier)
            url = URL.create(
                self.sync_drivername,
                username=params["user"],
                password=params["password"] or None,
                host=params["host"],
                port=params["port"],
                database=params["database"],
            )
        return url.render_as_string(hide_password=False)

    # ============================================
    # 连接池
    # ============================================
    @abstractmethod
    async def create_pool(self, identifier: str) -> Any:
        """为一个逻辑库创建连接池"""

    @abstractmethod
    async def close_pool(self, pool: Any) -> None:
        """关闭连接池"""

    # ============================================
    # 执行
    # ============================================
    @abstractmethod
    async def execute(self, pool: Any, sql: str) -> list[StatementOutcome]:
        """原样执行用户 SQL (可能包含多条语句)，返回每条语句的结果"""

    @abstractmethod
    async def execute_script(self, pool: Any, script: str) -> None:
        """执行受信任的多语句脚本 (数据集加载)，丢弃结果"""

    @abstractmethod
    async def fetch_all(self, pool: Any, sql: str, args: Sequence = ()) -> list[dict]:
        """执行带参数的查询 (内部 SQL，使用 ? 占位符)"""

    @abstractmethod
    async def execute_params(self, pool: Any, sql: str, args: Sequence = ()) -> int:
        """执行带参数的写语句 (内部 SQL，使用 ? 占位符)，返回影响行数"""

    @abstractmethod
    async def insert_rows(
        self, pool: Any, table: str, columns: Sequence[str], rows: Sequence[Sequence]
    ) -> None:
        """批量写入行"""

    @abstractmethod
    def status_row(self, outcome: StatementOutcome) -> dict[str, Any]:
        """为无字段描述的语句合成状态行"""

    def normalize_result(self, outcomes: Sequence[StatementOutcome]) -> QueryResult:
        """
        将驱动结果规范化为 QueryResult

        多语句时以最后一条语句的结果为准；无字段描述时返回单行状态结果。
        """
        if not outcomes:
            return QueryResult(rows=[], columns=[])

        last = outcomes[-1]
        if last.is_status:
            return QueryResult(rows=[self.status_row(last)], columns=list(self.status_columns))

        rows = last.rows
        if isinstance(rows, dict):
            rows = [rows]
        rows = list(rows or [])

        if last.columns:
            columns = list(last.columns)
        elif rows:
            columns = list(rows[0].keys())
        else:
            columns = []
        return QueryResult(rows=rows, columns=columns)

    # ============================================
    # Schema 内省
    # ============================================
    @abstractmethod
    async def introspect_schema(self, pool: Any) -> list[TableMetadata]:
        """列出用户表及其列 (不统计行数)"""

    @abstractmethod
    async def list_base_tables(self, pool: Any) -> list[str]:
        """列出当前库的全部基础表"""

    @abstractmethod
    async def table_exists(self, pool: Any, table: str) -> bool:
        """表是否存在"""

    @abstractmethod
    async def column_exists(self, pool: Any, table: str, column: str) -> bool:
        """列是否存在"""

    async def count_rows(self, pool: Any, table: str) -> int:
        rows = await self.fetch_all(pool, f"SELECT COUNT(*) AS cnt FROM {self.quote(table)}")
        return int(rows[0]["cnt"]) if rows else 0

    # ============================================
    # 物理库生命周期 (使用不指定库的根连接)
    # ============================================
    @abstractmethod
    async def database_exists(self, name: str) -> bool:
        """物理库是否存在"""

    @abstractmethod
    async def create_database(self, name: str, if_not_exists: bool = False) -> None:
        """创建物理库"""

    @abstractmethod
    async def list_databases(self) -> list[str]:
        """列出非系统物理库"""

    @abstractmethod
    async def drop_database_safely(self, name: str) -> None:
        """删除物理库 (必要时先断开其他连接)"""

    @abstractmethod
    async def copy_table(
        self,
        source_pool: Any,
        source_db: str,
        source_table: str,
        target_pool: Any,
        target_db: str,
        target_table: str,
        replace: bool = False,
    ) -> None:
        """将一张表的结构与数据复制到另一个库"""

    async def clone_database(
        self, source_pool: Any, source_db: str, target_pool: Any, target_db: str
    ) -> list[str]:
        """复制源库全部基础表到目标库，返回复制的表名"""
        tables = await self.list_base_tables(source_pool)
        for table in tables:
            await self.copy_table(source_pool, source_db, table, target_pool, target_db, table)
            logger.debug("表已复制", table=table, source=source_db, target=target_db)
        return tables


__all__ = [
    "SqlDialect",
    "RESERVED_TABLE_PREFIX",
    "is_uri",
    "group_catalog_rows",
]
