"""Python 执行桥"""

from .bridge import PythonBridge, PythonExecutionResult, compose_script
from .protocol import demultiplex, parse_line, parse_stream

__all__ = [
    "PythonBridge",
    "PythonExecutionResult",
    "compose_script",
    "demultiplex",
    "parse_line",
    "parse_stream",
]
