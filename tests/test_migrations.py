"""
系统库迁移测试
"""

import asyncio

import pytest

from seekinsight.constants import NOTEBOOK_LIST_TABLE, PUBLISHED_APPS_TABLE
from seekinsight.db.migrations import MIGRATIONS, MigrationRunner


class InMemoryDialect:
    """只模拟迁移用到的接口: 记录 DDL、保存版本表与已存在的对象"""

    name = "mysql"

    def __init__(self, tables=(), columns=()):
        self.tables = set(tables)
        self.columns = set(columns)
        self.versions = []
        self.ddl = []

    def quote(self, name):
        return f"`{name}`"

    async def execute_params(self, pool, sql, args=()):
        if sql.startswith("INSERT INTO"):
            self.versions.append(args[0])
        elif not sql.startswith("CREATE TABLE IF NOT EXISTS `seekinsight_schema_version`"):
            self.ddl.append(sql.strip())
        return 1

    async def fetch_all(self, pool, sql, args=()):
        return [{"version": v} for v in self.versions]

    async def table_exists(self, pool, table):
        return table in self.tables

    async def column_exists(self, pool, table, column):
        return (table, column) in self.columns


def test_fresh_database_applies_all_migrations():
    dialect = InMemoryDialect()

    recorded = asyncio.run(MigrationRunner(dialect).run(pool=None))

    assert recorded == [m.version for m in MIGRATIONS]
    assert dialect.versions == recorded
    assert len(dialect.ddl) == sum(len(m.statements["mysql"]) for m in MIGRATIONS)
    assert any("ADD COLUMN is_owner" in s for s in dialect.ddl)


def test_second_run_is_noop():
    dialect = InMemoryDialect()
    runner = MigrationRunner(dialect)
    asyncio.run(runner.run(pool=None))
    ddl_count = len(dialect.ddl)

    recorded = asyncio.run(runner.run(pool=None))

    assert recorded == []
    assert len(dialect.ddl) == ddl_count


def test_existing_objects_are_recorded_without_ddl():
    # 旧版本部署: 表已存在，is_owner 列也已存在，但没有版本表记录
    dialect = InMemoryDialect(
        tables={NOTEBOOK_LIST_TABLE, PUBLISHED_APPS_TABLE},
        columns={(NOTEBOOK_LIST_TABLE, "is_owner")},
    )

    recorded = asyncio.run(MigrationRunner(dialect).run(pool=None))

    assert recorded == [1, 2, 3, 4, 5]
    assert not any(NOTEBOOK_LIST_TABLE in s for s in dialect.ddl)
    assert not any(PUBLISHED_APPS_TABLE in s for s in dialect.ddl)
    assert len(dialect.ddl) == 2


@pytest.mark.parametrize("dialect_name", ["mysql", "postgres"])
def test_every_migration_has_both_dialects(dialect_name):
    for migration in MIGRATIONS:
        assert migration.statements[dialect_name]


def test_versions_are_unique_and_ordered():
    versions = [m.version for m in MIGRATIONS]

    assert versions == sorted(set(versions))
