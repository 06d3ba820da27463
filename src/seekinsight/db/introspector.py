"""
Schema 内省

两种方言输出相同的 TableMetadata 结构；列类型保持各自方言的原生名称。
"""

import structlog

from .models import TableMetadata
from .pool import PoolRegistry

logger = structlog.get_logger(__name__)


class SchemaIntrospector:
    """表与列元数据读取"""

    def __init__(self, pools: PoolRegistry):
        self.pools = pools

    async def list_tables(self, identifier: str) -> list[TableMetadata]:
        """列出用户表，rowCount 固定为 -1 (按需刷新)"""
        dialect = self.pools.dialect_for(identifier)
        pool = await self.pools.get_or_create(identifier)
        tables = await dialect.introspect_schema(pool)
        logger.debug("Schema 内省完成", dialect=dialect.name, tables=len(tables))
        return tables

    async def refresh_row_count(self, identifier: str, table: str) -> int:
        """显式统计某张表的行数"""
        dialect = self.pools.dialect_for(identifier)
        pool = await self.pools.get_or_create(identifier)
        return await dialect.count_rows(pool, table)


__all__ = ["SchemaIntrospector"]
