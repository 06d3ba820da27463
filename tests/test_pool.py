"""
连接池注册表测试
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from seekinsight.db.pool import PoolRegistry, create_dialects
from seekinsight.errors import UnsupportedDatabaseError


class RecordingDialect:
    """记录 create_pool / close_pool 调用的方言替身"""

    def __init__(self, name):
        self.name = name
        self.created = []
        self.closed = []

    async def create_pool(self, identifier):
        # 让出事件循环，使并发调用在锁上排队
        await asyncio.sleep(0.01)
        self.created.append(identifier)
        return MagicMock(name=f"pool-{identifier}")

    async def close_pool(self, pool):
        self.closed.append(pool)


@pytest.fixture
def dialects():
    return {"mysql": RecordingDialect("mysql"), "postgres": RecordingDialect("postgres")}


@pytest.fixture
def registry(dialects):
    return PoolRegistry(dialects, "mysql")


def test_unknown_default_dialect_rejected(dialects):
    with pytest.raises(UnsupportedDatabaseError):
        PoolRegistry(dialects, "oracle")


def test_concurrent_first_use_creates_one_pool(registry, dialects):
    async def scenario():
        return await asyncio.gather(*[registry.get_or_create("nb_1") for _ in range(5)])

    pools = asyncio.run(scenario())

    assert dialects["mysql"].created == ["nb_1"]
    assert all(p is pools[0] for p in pools)


def test_pool_is_reused(registry, dialects):
    async def scenario():
        first = await registry.get_or_create("nb_1")
        second = await registry.get_or_create("nb_1")
        other = await registry.get_or_create("nb_2")
        return first, second, other

    first, second, other = asyncio.run(scenario())

    assert first is second
    assert other is not first
    assert dialects["mysql"].created == ["nb_1", "nb_2"]


def test_uri_identifier_uses_scheme_dialect(registry, dialects):
    uri = "postgresql://user:pw@db.example.com:5432/analytics"

    asyncio.run(registry.get_or_create(uri))

    assert dialects["postgres"].created == [uri]
    assert dialects["mysql"].created == []


@pytest.mark.parametrize("uri,expected", [
    ("mysql://u:p@h/db", "mysql"),
    ("mysql+pymysql://u:p@h:3307/db", "mysql"),
    ("mariadb://u:p@h/db", "mysql"),
    ("postgres://u:p@h/db", "postgres"),
    ("postgresql+asyncpg://u:p@h/db", "postgres"),
])
def test_dialect_for_uri(registry, uri, expected):
    assert registry.dialect_for(uri).name == expected


def test_bare_name_uses_default_dialect(registry):
    assert registry.dialect_for("nb_20240101000000_abcd1234").name == "mysql"


def test_unsupported_scheme(registry):
    with pytest.raises(UnsupportedDatabaseError):
        registry.dialect_for("sqlite:///tmp/x.db")


def test_discard_closes_pool(registry, dialects):
    async def scenario():
        pool = await registry.get_or_create("nb_1")
        await registry.discard("nb_1")
        return pool

    pool = asyncio.run(scenario())

    assert dialects["mysql"].closed == [pool]
    assert not registry.is_cached("nb_1")


def test_discard_unknown_identifier_is_noop(registry, dialects):
    asyncio.run(registry.discard("never_opened"))

    assert dialects["mysql"].closed == []


def test_close_all(registry, dialects):
    async def scenario():
        await registry.get_or_create("a")
        await registry.get_or_create("postgres://u:p@h/b")
        await registry.close_all()

    asyncio.run(scenario())

    assert len(dialects["mysql"].closed) == 1
    assert len(dialects["postgres"].closed) == 1


def test_from_settings_selects_configured_dialect(settings):
    settings.db_type = "postgres"

    registry = PoolRegistry.from_settings(settings)

    assert registry.dialect.name == "postgres"
    assert set(create_dialects(settings)) == {"mysql", "postgres"}
