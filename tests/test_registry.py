"""
笔记本注册表测试
"""

import asyncio

import pytest

from seekinsight.provision.registry import NotebookRegistry


@pytest.fixture
def registry(settings, fake_pools):
    return NotebookRegistry(settings, fake_pools)


def test_queries_run_against_system_database(registry, fake_pools, mock_dialect):
    mock_dialect.fetch_all.return_value = []

    asyncio.run(registry.list_notebooks())

    assert fake_pools.created == ["seekinsight"]
    assert mock_dialect.fetch_all.await_args.args[0] == "pool:seekinsight"


def test_is_owner_normalized_to_bool(registry, mock_dialect):
    mock_dialect.fetch_all.return_value = [
        {"id": "a", "db_name": "nb_a", "is_owner": 1},
        {"id": "b", "db_name": "nb_b", "is_owner": 0},
        {"id": "c", "db_name": "nb_c", "is_owner": None},
    ]

    notebooks = asyncio.run(registry.list_notebooks())

    assert [n["is_owner"] for n in notebooks] == [True, False, True]


def test_missing_notebook_is_none(registry, mock_dialect):
    mock_dialect.fetch_all.return_value = []

    assert asyncio.run(registry.get_notebook("nope")) is None


def test_insert_stores_owner_flag_as_int(registry, mock_dialect):
    asyncio.run(registry.insert_notebook("abcd1234", "mysql://u:p@h/db", "Ext", "Plug", is_owner=False))

    sql, args = mock_dialect.execute_params.await_args.args[1:]
    assert sql.startswith("INSERT INTO `seekinsight_notebook_list`")
    assert args == ("abcd1234", "mysql://u:p@h/db", "Ext", 0, "Plug", None, 0, 0)


def test_update_only_touches_allowed_fields(registry, mock_dialect):
    mock_dialect.execute_params.return_value = 1

    asyncio.run(registry.update_notebook("abcd1234", {"topic": "New", "db_name": "evil"}))

    sql, args = mock_dialect.execute_params.await_args.args[1:]
    assert "SET topic = ? WHERE id = ?" in sql
    assert "db_name" not in sql
    assert args == ("New", "abcd1234")


def test_update_without_fields_is_noop(registry, mock_dialect):
    assert asyncio.run(registry.update_notebook("abcd1234", {})) == 0
    mock_dialect.execute_params.assert_not_awaited()


def test_delete_apps_for_notebook(registry, mock_dialect):
    mock_dialect.execute_params.return_value = 2

    assert asyncio.run(registry.delete_apps_for_notebook("abcd1234")) == 2
    assert "source_notebook_id = ?" in mock_dialect.execute_params.await_args.args[1]
