"""
Python 执行桥测试

使用当前解释器真实启动子进程；连接串指向内存 SQLite，
不依赖 MySQL / PostgreSQL 服务。
"""

import asyncio
import sys
from unittest.mock import MagicMock

import pytest

from seekinsight.errors import UnsupportedDatabaseError
from seekinsight.sandbox.bridge import (
    USER_CODE_MARKER,
    PythonBridge,
    PythonExecutionResult,
    compose_script,
    normalize_mode,
)


@pytest.fixture
def sqlite_pools():
    dialect = MagicMock()
    dialect.build_connection_string.return_value = "sqlite://"
    pools = MagicMock()
    pools.dialect_for.return_value = dialect
    return pools


@pytest.fixture
def bridge(settings, sqlite_pools):
    settings.python_executable = sys.executable
    return PythonBridge(settings, sqlite_pools)


def _run(bridge, code, mode=None, params=None):
    return asyncio.run(bridge.run(code, "nb_test", mode=mode, params=params))


def test_compose_inserts_user_code_once():
    script = compose_script("print('user code')")

    assert script.count("print('user code')") == 1
    assert USER_CODE_MARKER not in script
    assert script.index("print('user code')") < script.rindex("SI.finalize()")


def test_normalize_mode():
    assert normalize_mode("SCHEMA") == "SCHEMA"
    assert normalize_mode("EXECUTION") == "EXECUTION"
    assert normalize_mode(None) == "EXECUTION"
    assert normalize_mode("whatever") == "EXECUTION"


def test_prints_become_logs(bridge):
    result = _run(bridge, "print('hello')\nprint('world')")

    assert result.error is False
    assert result.logs == ["hello", "world"]
    assert result.plotly_data is None
    assert result.timestamp is not None


def test_empty_output(bridge):
    result = _run(bridge, "x = 1")

    assert result.error is False
    assert result.logs == []


def test_plot_extracted_from_logs(bridge):
    code = (
        "import plotly.graph_objects as go\n"
        "print('a')\n"
        "SI.plot(go.Figure(data=[go.Bar(x=[1, 2], y=[3, 4])]))\n"
        "print('b')\n"
    )

    result = _run(bridge, code)

    assert result.error is False
    assert result.logs == ["a", "b"]
    assert result.plotly_data["data"][0]["type"] == "bar"


def test_schema_mode_reports_parameters(bridge):
    code = "n = SI.params.slider('n', min=1, max=10, step=1, default=5)\nprint(n)"

    result = _run(bridge, code, mode="SCHEMA", params={"n": 9})

    assert result.logs == ["5"]
    assert result.schema_data == {
        "n": {"type": "slider", "label": "n", "min": 1, "max": 10,
              "step": 1, "default": 5, "dtype": None}
    }


def test_execution_mode_injects_parameters(bridge):
    code = "n = params.slider('n', min=1, max=10, step=1, default=5)\nprint(n * 2)"

    result = _run(bridge, code, mode="EXECUTION", params={"n": "7"})

    assert result.logs == ["14"]
    assert result.schema_data is None


def test_sql_helper_runs_against_connection(bridge):
    result = _run(bridge, "df = sql('SELECT 21 * 2 AS answer')\nprint(int(df['answer'][0]))")

    assert result.logs == ["42"]


def test_sql_error_is_in_band(bridge):
    result = _run(bridge, "df = sql('SELECT * FROM missing_table')\nprint(len(df))")

    assert result.error is False
    assert result.logs == ["0"]


def test_uncaught_exception_returns_error(bridge):
    result = _run(bridge, "print('before')\nraise ValueError('bad input')")

    assert result.error is True
    assert result.exit_code == 1
    assert result.logs[0] == "before"
    assert any("ValueError: bad input" in line for line in result.logs)
    assert result.to_dict() == {"logs": result.logs, "error": True}


def test_script_file_is_removed(bridge, settings):
    _run(bridge, "print('x')")
    _run(bridge, "raise SystemExit(3)")

    assert list(settings.workdir_path.glob("nb_exec_*.py")) == []


def test_spawn_failure(settings, sqlite_pools):
    settings.python_executable = "/nonexistent/bin/python"
    bridge = PythonBridge(settings, sqlite_pools)

    result = _run(bridge, "print('x')")

    assert result.error is True
    assert result.outcome == "spawn_error"
    assert result.logs[0].startswith("Failed to start Python interpreter")
    assert result.logs[1] == "Command used: /nonexistent/bin/python"
    assert list(settings.workdir_path.glob("nb_exec_*.py")) == []


def test_timeout_kills_process_and_keeps_partial_output(bridge, settings):
    settings.python_timeout_seconds = 2

    result = _run(bridge, "import time\nprint('partial', flush=True)\ntime.sleep(30)")

    assert result.error is True
    assert result.outcome == "timeout"
    assert result.logs == ["partial", "Execution timed out after 2 seconds"]
    assert list(settings.workdir_path.glob("nb_exec_*.py")) == []


def test_large_output_is_fully_collected(bridge):
    result = _run(bridge, "for i in range(20000):\n    print('line', i)")

    assert result.error is False
    assert len(result.logs) == 20000
    assert result.logs[-1] == "line 19999"


def test_unresolvable_database_is_an_error_result(settings, sqlite_pools):
    sqlite_pools.dialect_for.side_effect = UnsupportedDatabaseError("Unsupported database scheme: sqlite")
    bridge = PythonBridge(settings, sqlite_pools)

    result = _run(bridge, "print(1)")

    assert result.error is True
    assert result.outcome == "config_error"
    assert result.to_dict() == {"logs": ["Unsupported database scheme: sqlite"], "error": True}


def test_environment_carries_connection_and_params(bridge):
    env = bridge.build_env("nb_test", "SCHEMA", {"a": 1})

    assert env["SI_DB_URL"] == "sqlite://"
    assert env["SI_EXEC_MODE"] == "SCHEMA"
    assert env["SI_PARAMS"] == '{"a": 1}'


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX venv layout")
def test_resolve_interpreter_prefers_project_venv(settings, sqlite_pools, tmp_path):
    settings.python_executable = None
    venv_python = tmp_path / ".venv" / "bin" / "python"
    venv_python.parent.mkdir(parents=True)
    venv_python.write_text("")

    bridge = PythonBridge(settings, sqlite_pools)

    assert bridge.resolve_interpreter() == str(venv_python.resolve())


def test_success_json_shape():
    result = PythonExecutionResult(logs=["a"], plotly_data={"d": 1}, timestamp="10:00:00")

    assert result.to_dict() == {
        "logs": ["a"],
        "plotlyData": {"d": 1},
        "schemaData": None,
        "timestamp": "10:00:00",
    }
