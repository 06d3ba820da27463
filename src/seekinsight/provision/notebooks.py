"""
笔记本生命周期: 创建 / 连接外部库 / 克隆 / 更新 / 删除

内部笔记本拥有独立的物理库 (is_owner = True)，可被删除；
以 URI 标识的外部库永远不会被物理删除。
"""

import random
import secrets
from datetime import datetime
from typing import Any, Optional

import structlog

from ..config.settings import Settings
from ..constants import (
    CLONE_ICON,
    CLONE_TOPIC,
    DEFAULT_TOPIC,
    EXTERNAL_ICON,
    EXTERNAL_TOPIC,
    NOTEBOOK_ICONS,
)
from ..db.dialect import is_uri
from ..db.introspector import SchemaIntrospector
from ..db.pool import PoolRegistry
from ..errors import NotebookNotFoundError, ProtectedDatabaseError
from .registry import NotebookRegistry

logger = structlog.get_logger(__name__)


def new_notebook_identity(now: Optional[datetime] = None) -> tuple[str, str]:
    """生成 (笔记本 id, 物理库名)，库名形如 nb_20240101120000_1a2b3c4d"""
    notebook_id = secrets.token_hex(4)
    stamp = (now or datetime.now()).strftime("%Y%m%d%H%M%S")
    return notebook_id, f"nb_{stamp}_{notebook_id}"


class NotebookService:
    """笔记本生命周期管理"""

    def __init__(
        self,
        settings: Settings,
        pools: PoolRegistry,
        registry: NotebookRegistry,
        introspector: SchemaIntrospector,
    ):
        self.settings = settings
        self.pools = pools
        self.registry = registry
        self.introspector = introspector
        self.dialect = pools.dialect

    async def list_notebooks(self) -> list[dict]:
        return await self.registry.list_notebooks()

    async def get_notebook(self, notebook_id: str) -> dict:
        notebook = await self.registry.get_notebook(notebook_id)
        if notebook is None:
            raise NotebookNotFoundError(notebook_id)
        return notebook

    async def create_notebook(self, topic: Optional[str] = None, user_id: int = 0) -> dict:
        """分配 id、创建物理库并登记"""
        notebook_id, db_name = new_notebook_identity()
        await self.dialect.create_database(db_name)
        await self.registry.insert_notebook(
            notebook_id,
            db_name,
            topic or DEFAULT_TOPIC,
            random.choice(NOTEBOOK_ICONS),
            user_id=user_id,
        )
        logger.info("笔记本已创建", notebook_id=notebook_id, db_name=db_name)
        return await self.get_notebook(notebook_id)

    async def connect_external(self, uri: str, topic: Optional[str] = None, user_id: int = 0) -> dict:
        """登记外部数据库 URI (先内省一次验证可连通)"""
        if not is_uri(uri):
            raise ProtectedDatabaseError("External connections must be full connection URIs")
        tables = await self.introspector.list_tables(uri)
        notebook_id = secrets.token_hex(4)
        await self.registry.insert_notebook(
            notebook_id,
            uri,
            topic or EXTERNAL_TOPIC,
            EXTERNAL_ICON,
            user_id=user_id,
            is_owner=False,
        )
        logger.info("外部数据库已连接", notebook_id=notebook_id, tables=len(tables))
        return await self.get_notebook(notebook_id)

    async def clone_notebook(
        self,
        source_db_name: str,
        new_topic: Optional[str] = None,
        suggestions_json: Optional[str] = None,
        user_id: int = 0,
    ) -> dict:
        """复制源库的全部基础表到新的自有库"""
        if is_uri(source_db_name):
            raise ProtectedDatabaseError("External databases cannot be cloned")

        notebook_id, db_name = new_notebook_identity()
        await self.dialect.create_database(db_name)
        try:
            source_pool = await self.pools.get_or_create(source_db_name)
            target_pool = await self.pools.get_or_create(db_name)
            tables = await self.dialect.clone_database(source_pool, source_db_name, target_pool, db_name)
        except Exception:
            logger.warning("克隆失败，回收新建的库", db_name=db_name, exc_info=True)
            await self.pools.discard(db_name)
            await self.dialect.drop_database_safely(db_name)
            raise

        await self.registry.insert_notebook(
            notebook_id,
            db_name,
            new_topic or CLONE_TOPIC,
            CLONE_ICON,
            user_id=user_id,
            suggestions_json=suggestions_json,
        )
        logger.info("笔记本已克隆", source=source_db_name, db_name=db_name, tables=len(tables))
        return await self.get_notebook(notebook_id)

    async def update_notebook(self, notebook_id: str, **fields: Any) -> dict:
        await self.get_notebook(notebook_id)
        await self.registry.update_notebook(
            notebook_id, {k: v for k, v in fields.items() if v is not None}
        )
        return await self.get_notebook(notebook_id)

    async def record_view(self, notebook_id: str) -> None:
        await self.registry.increment_views(notebook_id)

    def can_drop(self, notebook: dict) -> bool:
        """只删除自有、非受保护、非 URI 的物理库"""
        db_name = notebook["db_name"]
        return (
            bool(notebook.get("is_owner", True))
            and not is_uri(db_name)
            and not self.dialect.is_protected(db_name)
        )

    async def delete_notebook(self, notebook_id: str) -> bool:
        """
        删除笔记本

        返回是否删除了物理库；登记行与来源于它的应用总是被删除。
        """
        notebook = await self.get_notebook(notebook_id)
        db_name = notebook["db_name"]

        dropped = False
        if self.can_drop(notebook):
            await self.pools.discard(db_name)
            await self.dialect.drop_database_safely(db_name)
            dropped = True
        else:
            logger.info("保留物理库", notebook_id=notebook_id, owned=notebook.get("is_owner"))

        apps = await self.registry.delete_apps_for_notebook(notebook_id)
        await self.registry.delete_notebook(notebook_id)
        logger.info("笔记本已删除", notebook_id=notebook_id, dropped=dropped, apps=apps)
        return dropped


__all__ = ["NotebookService", "new_notebook_identity"]
