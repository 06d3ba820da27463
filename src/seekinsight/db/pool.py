"""
连接池注册表

每个逻辑库标识 (裸库名或完整 URI) 对应唯一一个连接池，首次使用时惰性创建。
注册表由 Gateway 持有并注入各组件，不是模块级单例。
"""

import asyncio
from typing import Any, Optional

import structlog
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from ..config.settings import Settings
from ..errors import UnsupportedDatabaseError
from .dialect import SqlDialect, is_uri
from .mysql import MySqlDialect
from .postgres import PostgresDialect

logger = structlog.get_logger(__name__)

# URI 协议 (去掉 +driver 后缀) -> 方言名
_SCHEME_DIALECTS = {
    "mysql": "mysql",
    "mariadb": "mysql",
    "postgres": "postgres",
    "postgresql": "postgres",
}


def create_dialects(settings: Settings) -> dict[str, SqlDialect]:
    """创建全部已支持的方言实例"""
    return {
        "mysql": MySqlDialect(settings),
        "postgres": PostgresDialect(settings),
    }


class PoolRegistry:
    """连接池注册表"""

    def __init__(self, dialects: dict[str, SqlDialect], default: str):
        if default not in dialects:
            raise UnsupportedDatabaseError(f"Unsupported DB_TYPE: {default}")
        self._dialects = dialects
        self._default = default
        self._pools: dict[str, Any] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "PoolRegistry":
        return cls(create_dialects(settings), settings.db_type)

    @property
    def dialect(self) -> SqlDialect:
        """默认方言 (内部库使用)"""
        return self._dialects[self._default]

    def dialect_for(self, identifier: str) -> SqlDialect:
        """裸库名使用默认方言，URI 按协议选择方言"""
        if not is_uri(identifier):
            return self.dialect
        try:
            backend = make_url(identifier).get_backend_name()
        except ArgumentError as e:
            raise UnsupportedDatabaseError(f"Invalid connection URI: {e}") from e
        name = _SCHEME_DIALECTS.get(backend)
        if name is None or name not in self._dialects:
            raise UnsupportedDatabaseError(f"Unsupported database scheme: {backend}")
        return self._dialects[name]

    def is_cached(self, identifier: str) -> bool:
        return identifier in self._pools

    async def get_or_create(self, identifier: str) -> Any:
        """
        获取连接池，不存在时创建

        同一标识的并发首次调用只会创建一个连接池；连接失败原样抛出，不重试。
        """
        pool = self._pools.get(identifier)
        if pool is not None:
            return pool

        lock = self._locks.setdefault(identifier, asyncio.Lock())
        async with lock:
            pool = self._pools.get(identifier)
            if pool is None:
                dialect = self.dialect_for(identifier)
                pool = await dialect.create_pool(identifier)
                self._pools[identifier] = pool
                logger.info("连接池已创建", dialect=dialect.name, pools=len(self._pools))
        return pool

    async def discard(self, identifier: str) -> None:
        """关闭并移除连接池 (删除物理库之前调用)"""
        pool = self._pools.pop(identifier, None)
        self._locks.pop(identifier, None)
        if pool is not None:
            await self.dialect_for(identifier).close_pool(pool)

    async def close_all(self) -> None:
        """关闭全部连接池"""
        identifiers = list(self._pools)
        for identifier in identifiers:
            await self.discard(identifier)
        logger.info("全部连接池已关闭", count=len(identifiers))


__all__ = ["PoolRegistry", "create_dialects"]
