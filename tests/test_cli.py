"""
CLI 测试
"""

import asyncio
import importlib
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from seekinsight.cli.main import build_parser, run_command
from seekinsight.db.models import QueryResult
from seekinsight.errors import ProvisioningError
from seekinsight.sandbox.bridge import PythonExecutionResult

# seekinsight.cli 导出了同名函数 main，这里取子模块本身
cli_main = importlib.import_module("seekinsight.cli.main")


@pytest.fixture
def gateway(monkeypatch, settings):
    gw = MagicMock()
    gw.close = AsyncMock()
    gw.executor.run = AsyncMock(return_value=QueryResult(rows=[{"a": 1}], columns=["a"]))
    gw.bridge.run = AsyncMock()
    gw.provisioner.provision = AsyncMock(return_value=True)
    gw.list_databases = AsyncMock(return_value=["nb_1"])
    monkeypatch.setattr(cli_main, "Gateway", lambda s: gw)
    monkeypatch.setattr(cli_main, "get_settings", lambda: settings)
    return gw


def _run(argv):
    display = MagicMock()
    code = asyncio.run(run_command(build_parser().parse_args(argv), display))
    return code, display


def test_sql_json_output(gateway, capsys):
    code, _ = _run(["--json", "sql", "SELECT 1 AS a", "--db", "nb_1"])

    assert code == 0
    assert json.loads(capsys.readouterr().out) == {"rows": [{"a": 1}], "columns": ["a"]}
    gateway.executor.run.assert_awaited_once_with("nb_1", "SELECT 1 AS a")
    gateway.close.assert_awaited_once()


def test_python_error_exit_code(gateway, tmp_path):
    script = tmp_path / "job.py"
    script.write_text("raise ValueError()")
    gateway.bridge.run.return_value = PythonExecutionResult(logs=["boom"], error=True, outcome="error")

    code, display = _run(["python", str(script), "--db", "nb_1", "--params", '{"n": 2}'])

    assert code == 1
    gateway.bridge.run.assert_awaited_once_with(
        "raise ValueError()", "nb_1", mode="EXECUTION", params={"n": 2}
    )
    display.print_python_result.assert_called_once()


def test_init_failure(gateway):
    gateway.provisioner.provision.side_effect = ProvisioningError("System initialization failed: x")

    code, display = _run(["init"])

    assert code == 1
    display.print_error.assert_called_once()


def test_databases(gateway):
    code, display = _run(["databases"])

    assert code == 0
    display.print_databases.assert_called_once_with(["nb_1"])


def test_sql_requires_database():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["sql", "SELECT 1"])
