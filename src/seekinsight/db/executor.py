"""
用户 SQL 执行器

原样执行 SQL (不改写、不绑定参数)，并将驱动结果规范化为 QueryResult。
驱动抛出的异常原样向上传播，由 HTTP 层映射为 500。
"""

import time

import structlog

from ..observability.metrics import SQL_QUERY_COUNT, SQL_QUERY_LATENCY
from .models import QueryResult
from .pool import PoolRegistry

logger = structlog.get_logger(__name__)


class SqlExecutor:
    """SQL 执行与结果规范化"""

    def __init__(self, pools: PoolRegistry):
        self.pools = pools

    async def run(self, identifier: str, sql: str) -> QueryResult:
        """在指定逻辑库上执行 SQL，多语句时返回最后一条语句的结果"""
        dialect = self.pools.dialect_for(identifier)
        start = time.perf_counter()
        status = "success"
        try:
            pool = await self.pools.get_or_create(identifier)
            outcomes = await dialect.execute(pool, sql)
            result = dialect.normalize_result(outcomes)
            logger.debug(
                "SQL 执行完成",
                dialect=dialect.name,
                statements=len(outcomes),
                rows=len(result.rows),
            )
            return result
        except Exception as e:
            status = "error"
            logger.debug("SQL 执行失败", dialect=dialect.name, error=str(e))
            raise
        finally:
            duration = time.perf_counter() - start
            SQL_QUERY_COUNT.labels(db_type=dialect.name, status=status).inc()
            SQL_QUERY_LATENCY.labels(db_type=dialect.name, status=status).observe(duration)


__all__ = ["SqlExecutor"]
