"""
Python 执行桥

COMPOSE -> SPAWN -> STREAM -> DEMUX -> RESPOND

每次调用启动一个独立子进程: 运行时源码 + 用户代码 + finalize 写入临时文件，
连接串、执行模式与注入参数通过环境变量传递，结束后总是删除临时文件。
"""

import asyncio
import json
import os
import secrets
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime
from importlib import resources
from pathlib import Path
from typing import Any, Optional

import structlog

from ..config.settings import Settings
from ..db.pool import PoolRegistry
from ..errors import UnsupportedDatabaseError
from ..observability.metrics import PYTHON_EXECUTION_COUNT, PYTHON_EXECUTION_LATENCY
from .protocol import demultiplex, split_lines
from .runtime import MODE_EXECUTION, MODE_SCHEMA, SHIM_VERSION

logger = structlog.get_logger(__name__)

USER_CODE_MARKER = "# @@SI_USER_CODE@@"

# 子进程结束后等待管道读空的上限
_READER_GRACE_SECONDS = 2.0


def _load_template() -> tuple[str, str]:
    """运行时源码 + 唯一的用户代码插入点 + finalize"""
    shim = resources.files("seekinsight.sandbox").joinpath("runtime.py").read_text(encoding="utf-8")
    template = (
        f"# seekinsight runtime v{SHIM_VERSION}\n"
        f"{shim}\n\n"
        f"{USER_CODE_MARKER}\n\n"
        "SI.finalize()\n"
    )
    prefix, suffix = template.split(USER_CODE_MARKER)
    return prefix, suffix


async def _drain(stream: asyncio.StreamReader, buffer: bytearray) -> None:
    """持续读取管道直到 EOF，超时被杀时已读内容仍保留在 buffer 中"""
    while True:
        chunk = await stream.read(65536)
        if not chunk:
            return
        buffer.extend(chunk)


_TEMPLATE: Optional[tuple[str, str]] = None


def compose_script(user_code: str) -> str:
    """拼装子进程脚本，用户代码只插入到唯一的占位位置"""
    global _TEMPLATE
    if _TEMPLATE is None:
        _TEMPLATE = _load_template()
    prefix, suffix = _TEMPLATE
    return prefix + user_code + "\n" + suffix


def normalize_mode(mode: Optional[str]) -> str:
    return MODE_SCHEMA if mode == MODE_SCHEMA else MODE_EXECUTION


@dataclass
class PythonExecutionResult:
    """执行结果"""
    logs: list[str] = field(default_factory=list)
    plotly_data: Any = None
    schema_data: Any = None
    timestamp: Optional[str] = None
    error: bool = False
    exit_code: Optional[int] = None
    # success / error / timeout / spawn_error / config_error
    outcome: str = "success"

    def to_dict(self) -> dict:
        if self.error:
            return {"logs": self.logs, "error": True}
        return {
            "logs": self.logs,
            "plotlyData": self.plotly_data,
            "schemaData": self.schema_data,
            "timestamp": self.timestamp,
        }


class PythonBridge:
    """用户 Python 代码执行"""

    def __init__(self, settings: Settings, pools: PoolRegistry):
        self.settings = settings
        self.pools = pools

    @property
    def workdir(self) -> Path:
        return self.settings.workdir_path

    def resolve_interpreter(self) -> str:
        """配置覆盖 > 项目 .venv > 当前解释器"""
        if self.settings.python_executable:
            return self.settings.python_executable
        if os.name == "nt":
            venv = self.workdir / ".venv" / "Scripts" / "python.exe"
        else:
            venv = self.workdir / ".venv" / "bin" / "python"
        if venv.exists():
            return str(venv)
        return sys.executable

    def build_env(self, db_name: str, mode: str, params: Optional[dict]) -> dict[str, str]:
        dialect = self.pools.dialect_for(db_name)
        env = dict(os.environ)
        env.update({
            "SI_EXEC_MODE": mode,
            "SI_PARAMS": json.dumps(params or {}),
            "SI_DB_URL": dialect.build_connection_string(db_name),
            "SI_CONNECT_TIMEOUT": str(self.settings.python_connect_timeout),
            "SI_LLM_API_KEY": self.settings.llm_api_key,
            "SI_LLM_BASE_URL": self.settings.llm_base_url,
            "SI_LLM_MODEL": self.settings.llm_model,
            "PYTHONIOENCODING": "utf-8",
        })
        return env

    def _script_path(self) -> Path:
        name = f"nb_exec_{secrets.token_hex(4)}_{int(time.time() * 1000)}.py"
        return self.workdir / name

    async def run(
        self,
        code: str,
        db_name: str,
        mode: Optional[str] = None,
        params: Optional[dict] = None,
    ) -> PythonExecutionResult:
        """执行用户代码并解复用输出"""
        mode = normalize_mode(mode)
        start = time.perf_counter()
        result = await self._execute(code, db_name, mode, params)
        duration = time.perf_counter() - start
        PYTHON_EXECUTION_COUNT.labels(mode=mode, outcome=result.outcome).inc()
        PYTHON_EXECUTION_LATENCY.labels(mode=mode, outcome=result.outcome).observe(duration)
        return result

    async def _execute(
        self, code: str, db_name: str, mode: str, params: Optional[dict]
    ) -> PythonExecutionResult:
        try:
            env = self.build_env(db_name, mode, params)
        except UnsupportedDatabaseError as e:
            logger.warning("无法为子进程生成连接串", db_name=db_name, error=str(e))
            return PythonExecutionResult(logs=[str(e)], error=True, outcome="config_error")
        interpreter = self.resolve_interpreter()
        script = self._script_path()
        script.write_text(compose_script(code), encoding="utf-8")

        try:
            try:
                process = await asyncio.create_subprocess_exec(
                    interpreter,
                    str(script),
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    env=env,
                    cwd=str(self.workdir),
                )
            except OSError as e:
                logger.error("Python 解释器启动失败", interpreter=interpreter, error=str(e))
                return PythonExecutionResult(
                    logs=[f"Failed to start Python interpreter: {e}", f"Command used: {interpreter}"],
                    error=True,
                    outcome="spawn_error",
                )

            timeout = self.settings.python_timeout_seconds or None
            stdout_buf, stderr_buf = bytearray(), bytearray()
            readers = [
                asyncio.create_task(_drain(process.stdout, stdout_buf)),
                asyncio.create_task(_drain(process.stderr, stderr_buf)),
            ]
            timed_out = False
            try:
                await asyncio.wait_for(process.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                timed_out = True
                process.kill()
                await process.wait()
            # 子进程派生的后代可能仍持有管道，读取不无限等待
            _, pending = await asyncio.wait(readers, timeout=_READER_GRACE_SECONDS)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

            demuxed = demultiplex(stdout_buf.decode("utf-8", errors="replace"))
            stderr_text = stderr_buf.decode("utf-8", errors="replace")

            if timed_out:
                logger.warning("Python 执行超时", db_name=db_name, timeout=timeout)
                return PythonExecutionResult(
                    logs=demuxed.logs + split_lines(stderr_text)
                    + [f"Execution timed out after {timeout:g} seconds"],
                    error=True,
                    outcome="timeout",
                )

            if process.returncode != 0:
                logger.debug(
                    "Python 执行失败",
                    db_name=db_name,
                    exit_code=process.returncode,
                    stderr=stderr_text,
                )
                return PythonExecutionResult(
                    logs=demuxed.logs + split_lines(stderr_text),
                    error=True,
                    exit_code=process.returncode,
                    outcome="error",
                )

            return PythonExecutionResult(
                logs=demuxed.logs,
                plotly_data=demuxed.plotly_data,
                schema_data=demuxed.schema_data,
                timestamp=datetime.now().strftime("%H:%M:%S"),
                exit_code=0,
            )
        finally:
            script.unlink(missing_ok=True)


__all__ = [
    "PythonBridge",
    "PythonExecutionResult",
    "compose_script",
    "normalize_mode",
    "USER_CODE_MARKER",
]
