"""
笔记本 / 应用注册表 (系统库中的持久化行)
"""

from typing import Any, Optional

import structlog

from ..config.settings import Settings
from ..constants import NOTEBOOK_LIST_TABLE, PUBLISHED_APPS_TABLE
from ..db.pool import PoolRegistry

logger = structlog.get_logger(__name__)

# 允许通过 update_notebook 修改的字段
UPDATABLE_NOTEBOOK_FIELDS = ("topic", "icon_name", "suggestions_json")


def _normalize_notebook(row: dict) -> dict:
    row = dict(row)
    if "is_owner" in row:
        row["is_owner"] = bool(row["is_owner"]) if row["is_owner"] is not None else True
    return row


class NotebookRegistry:
    """系统库读写"""

    def __init__(self, settings: Settings, pools: PoolRegistry):
        self.settings = settings
        self.pools = pools
        self.dialect = pools.dialect

    async def _pool(self) -> Any:
        return await self.pools.get_or_create(self.settings.system_database)

    def _table(self, name: str) -> str:
        return self.dialect.quote(name)

    # ============================================
    # 笔记本
    # ============================================
    async def list_notebooks(self) -> list[dict]:
        rows = await self.dialect.fetch_all(
            await self._pool(),
            f"SELECT * FROM {self._table(NOTEBOOK_LIST_TABLE)} ORDER BY created_at DESC",
        )
        return [_normalize_notebook(r) for r in rows]

    async def get_notebook(self, notebook_id: str) -> Optional[dict]:
        rows = await self.dialect.fetch_all(
            await self._pool(),
            f"SELECT * FROM {self._table(NOTEBOOK_LIST_TABLE)} WHERE id = ?",
            (notebook_id,),
        )
        return _normalize_notebook(rows[0]) if rows else None

    async def insert_notebook(
        self,
        notebook_id: str,
        db_name: str,
        topic: str,
        icon_name: str,
        user_id: int = 0,
        suggestions_json: Optional[str] = None,
        is_owner: bool = True,
        views: int = 0,
    ) -> None:
        await self.dialect.execute_params(
            await self._pool(),
            f"INSERT INTO {self._table(NOTEBOOK_LIST_TABLE)} "
            "(id, db_name, topic, user_id, icon_name, suggestions_json, views, is_owner) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (notebook_id, db_name, topic, user_id, icon_name, suggestions_json, views, int(is_owner)),
        )

    async def update_notebook(self, notebook_id: str, fields: dict[str, Any]) -> int:
        updates = {k: v for k, v in fields.items() if k in UPDATABLE_NOTEBOOK_FIELDS}
        if not updates:
            return 0
        assignments = ", ".join(f"{k} = ?" for k in updates)
        return await self.dialect.execute_params(
            await self._pool(),
            f"UPDATE {self._table(NOTEBOOK_LIST_TABLE)} SET {assignments} WHERE id = ?",
            (*updates.values(), notebook_id),
        )

    async def increment_views(self, notebook_id: str) -> int:
        return await self.dialect.execute_params(
            await self._pool(),
            f"UPDATE {self._table(NOTEBOOK_LIST_TABLE)} SET views = views + 1 WHERE id = ?",
            (notebook_id,),
        )

    async def delete_notebook(self, notebook_id: str) -> int:
        return await self.dialect.execute_params(
            await self._pool(),
            f"DELETE FROM {self._table(NOTEBOOK_LIST_TABLE)} WHERE id = ?",
            (notebook_id,),
        )

    # ============================================
    # 已发布应用
    # ============================================
    async def delete_apps_for_notebook(self, notebook_id: str) -> int:
        """级联删除来源于该笔记本的应用"""
        return await self.dialect.execute_params(
            await self._pool(),
            f"DELETE FROM {self._table(PUBLISHED_APPS_TABLE)} WHERE source_notebook_id = ?",
            (notebook_id,),
        )

    async def app_exists(self, app_id: str) -> bool:
        rows = await self.dialect.fetch_all(
            await self._pool(),
            f"SELECT id FROM {self._table(PUBLISHED_APPS_TABLE)} WHERE id = ?",
            (app_id,),
        )
        return bool(rows)

    async def insert_app(self, app: dict[str, Any]) -> None:
        columns = list(app)
        await self.dialect.execute_params(
            await self._pool(),
            f"INSERT INTO {self._table(PUBLISHED_APPS_TABLE)} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})",
            tuple(app.values()),
        )


__all__ = ["NotebookRegistry", "UPDATABLE_NOTEBOOK_FIELDS"]
