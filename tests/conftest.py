from unittest.mock import AsyncMock, MagicMock

import pytest

from seekinsight.config.settings import Settings
from seekinsight.db.mysql import MySqlDialect
from seekinsight.db.postgres import PostgresDialect


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the developer's .env and pointed at a temp workdir."""
    return Settings(
        _env_file=None,
        db_type="mysql",
        mysql_user="root",
        mysql_password="secret",
        pg_user="postgres",
        pg_password="postgres",
        python_workdir=str(tmp_path),
        python_timeout_seconds=60,
        init_lock_file=".init_lock",
        llm_api_key="",
    )


@pytest.fixture
def mysql_dialect(settings):
    return MySqlDialect(settings)


@pytest.fixture
def postgres_dialect(settings):
    return PostgresDialect(settings)


class FakePools:
    """Stand-in for PoolRegistry: hands out opaque pool tokens and records discards."""

    def __init__(self, dialect):
        self.dialect = dialect
        self.created = []
        self.discarded = []

    def dialect_for(self, identifier):
        return self.dialect

    async def get_or_create(self, identifier):
        self.created.append(identifier)
        return f"pool:{identifier}"

    async def discard(self, identifier):
        self.discarded.append(identifier)

    async def close_all(self):
        pass


@pytest.fixture
def mock_dialect(settings):
    """MySqlDialect double: async methods become AsyncMocks, pure helpers stay real."""
    real = MySqlDialect(settings)
    dialect = MagicMock(spec=MySqlDialect)
    dialect.name = "mysql"
    dialect.quote.side_effect = real.quote
    dialect.is_protected.side_effect = real.is_protected
    dialect.build_connection_string.side_effect = real.build_connection_string
    return dialect


@pytest.fixture
def fake_pools(mock_dialect):
    return FakePools(mock_dialect)


@pytest.fixture
def mock_registry():
    registry = MagicMock()
    for name in (
        "list_notebooks", "get_notebook", "insert_notebook", "update_notebook",
        "increment_views", "delete_notebook", "delete_apps_for_notebook",
        "app_exists", "insert_app",
    ):
        setattr(registry, name, AsyncMock())
    return registry


