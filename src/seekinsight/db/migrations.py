"""
系统库 Schema 迁移

版本表记录已应用的迁移编号；迁移只向前执行，
每个迁移执行前先检查目标对象是否已存在，保证可重入。
"""

from dataclasses import dataclass
from typing import Any, Optional

import structlog

from ..constants import (
    NOTEBOOK_LIST_TABLE,
    PUBLISHED_APPS_TABLE,
    SCHEMA_VERSION_TABLE,
    SHARE_SNAPSHOTS_TABLE,
    USER_SETTINGS_TABLE,
)
from .dialect import SqlDialect

logger = structlog.get_logger(__name__)


@dataclass
class Migration:
    """
    单个迁移

    statements 按方言名给出 DDL；guard_table / guard_column 描述
    迁移创建的对象，已存在时只记录版本、不再执行 DDL。
    """
    version: int
    name: str
    statements: dict[str, list[str]]
    guard_table: str
    guard_column: Optional[str] = None


MIGRATIONS: list[Migration] = [
    Migration(
        version=1,
        name="create_notebook_list",
        guard_table=NOTEBOOK_LIST_TABLE,
        statements={
            "mysql": [f"""
                CREATE TABLE IF NOT EXISTS `{NOTEBOOK_LIST_TABLE}` (
                    id VARCHAR(50) PRIMARY KEY,
                    db_name VARCHAR(500) NOT NULL,
                    topic VARCHAR(200) DEFAULT 'Untitled',
                    user_id INT DEFAULT 0,
                    icon_name VARCHAR(50),
                    suggestions_json TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    views INT DEFAULT 0
                )
            """],
            "postgres": [f"""
                CREATE TABLE IF NOT EXISTS "{NOTEBOOK_LIST_TABLE}" (
                    id VARCHAR(50) PRIMARY KEY,
                    db_name VARCHAR(500) NOT NULL,
                    topic VARCHAR(200) DEFAULT 'Untitled',
                    user_id INT DEFAULT 0,
                    icon_name VARCHAR(50),
                    suggestions_json TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    views INT DEFAULT 0
                )
            """],
        },
    ),
    Migration(
        version=2,
        name="create_published_apps",
        guard_table=PUBLISHED_APPS_TABLE,
        statements={
            "mysql": [f"""
                CREATE TABLE IF NOT EXISTS `{PUBLISHED_APPS_TABLE}` (
                    id VARCHAR(50) PRIMARY KEY,
                    title VARCHAR(200) NOT NULL,
                    description TEXT,
                    prompt TEXT,
                    author VARCHAR(100) DEFAULT 'Anonymous',
                    type VARCHAR(20) NOT NULL,
                    code MEDIUMTEXT,
                    source_db_name VARCHAR(500),
                    source_notebook_id VARCHAR(50),
                    params_schema TEXT,
                    snapshot_json LONGTEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    views INT DEFAULT 0
                )
            """],
            "postgres": [f"""
                CREATE TABLE IF NOT EXISTS "{PUBLISHED_APPS_TABLE}" (
                    id VARCHAR(50) PRIMARY KEY,
                    title VARCHAR(200) NOT NULL,
                    description TEXT,
                    prompt TEXT,
                    author VARCHAR(100) DEFAULT 'Anonymous',
                    type VARCHAR(20) NOT NULL,
                    code TEXT,
                    source_db_name VARCHAR(500),
                    source_notebook_id VARCHAR(50),
                    params_schema TEXT,
                    snapshot_json TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    views INT DEFAULT 0
                )
            """],
        },
    ),
    Migration(
        version=3,
        name="create_share_snapshots",
        guard_table=SHARE_SNAPSHOTS_TABLE,
        statements={
            "mysql": [
                f"CREATE TABLE IF NOT EXISTS `{SHARE_SNAPSHOTS_TABLE}` ("
                "id VARCHAR(12) PRIMARY KEY, app_id VARCHAR(50), params_json TEXT, "
                "created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP)"
            ],
            "postgres": [
                f'CREATE TABLE IF NOT EXISTS "{SHARE_SNAPSHOTS_TABLE}" ('
                "id VARCHAR(12) PRIMARY KEY, app_id VARCHAR(50), params_json TEXT, "
                "created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP)"
            ],
        },
    ),
    Migration(
        version=4,
        name="create_user_settings",
        guard_table=USER_SETTINGS_TABLE,
        statements={
            "mysql": [
                f"CREATE TABLE IF NOT EXISTS `{USER_SETTINGS_TABLE}` ("
                "user_id VARCHAR(50) PRIMARY KEY, settings_json TEXT, "
                "updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP)"
            ],
            "postgres": [
                f'CREATE TABLE IF NOT EXISTS "{USER_SETTINGS_TABLE}" ('
                "user_id VARCHAR(50) PRIMARY KEY, settings_json TEXT, "
                "updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP)"
            ],
        },
    ),
    Migration(
        version=5,
        name="add_notebook_is_owner",
        guard_table=NOTEBOOK_LIST_TABLE,
        guard_column="is_owner",
        statements={
            "mysql": [f"ALTER TABLE `{NOTEBOOK_LIST_TABLE}` ADD COLUMN is_owner TINYINT(1) DEFAULT 1"],
            "postgres": [f'ALTER TABLE "{NOTEBOOK_LIST_TABLE}" ADD COLUMN is_owner SMALLINT DEFAULT 1'],
        },
    ),
]


class MigrationRunner:
    """按版本号顺序执行未应用的迁移"""

    def __init__(self, dialect: SqlDialect, migrations: Optional[list[Migration]] = None):
        self.dialect = dialect
        self.migrations = sorted(migrations or MIGRATIONS, key=lambda m: m.version)

    async def _ensure_version_table(self, pool: Any) -> None:
        await self.dialect.execute_params(
            pool,
            f"CREATE TABLE IF NOT EXISTS {self.dialect.quote(SCHEMA_VERSION_TABLE)} ("
            "version INT PRIMARY KEY, name VARCHAR(100) NOT NULL, "
            "applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP)",
        )

    async def applied_versions(self, pool: Any) -> set[int]:
        rows = await self.dialect.fetch_all(
            pool, f"SELECT version FROM {self.dialect.quote(SCHEMA_VERSION_TABLE)}"
        )
        return {int(r["version"]) for r in rows}

    async def _already_present(self, pool: Any, migration: Migration) -> bool:
        if migration.guard_column:
            return await self.dialect.column_exists(pool, migration.guard_table, migration.guard_column)
        return await self.dialect.table_exists(pool, migration.guard_table)

    async def run(self, pool: Any) -> list[int]:
        """执行待应用迁移，返回本次新记录的版本号"""
        await self._ensure_version_table(pool)
        applied = await self.applied_versions(pool)
        recorded = []

        for migration in self.migrations:
            if migration.version in applied:
                continue
            if await self._already_present(pool, migration):
                logger.info("迁移目标已存在，仅记录版本", version=migration.version, name=migration.name)
            else:
                for statement in migration.statements[self.dialect.name]:
                    await self.dialect.execute_params(pool, statement)
                logger.info("迁移已应用", version=migration.version, name=migration.name)
            await self.dialect.execute_params(
                pool,
                f"INSERT INTO {self.dialect.quote(SCHEMA_VERSION_TABLE)} (version, name) VALUES (?, ?)",
                (migration.version, migration.name),
            )
            recorded.append(migration.version)
        return recorded


__all__ = ["Migration", "MIGRATIONS", "MigrationRunner"]
