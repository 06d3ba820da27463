"""
子进程 stdout 解复用

每行按前缀标签解析为一个类型化变体:
PlotLine | SchemaLine | DisplayBlockLine | CommandLine | PlainLine

绘图与 schema 负载从日志中取出 (后写覆盖先写)；
富文本块与布局命令原样保留在日志中，由前端解释。
"""

import json
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Union

import structlog

from .runtime import CMD_TAG, DISPLAY_TAG, PLOT_TAG, SCHEMA_TAG

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PlotLine:
    payload: Any


@dataclass(frozen=True)
class SchemaLine:
    payload: Any


@dataclass(frozen=True)
class DisplayBlockLine:
    raw: str
    payload: Any


@dataclass(frozen=True)
class CommandLine:
    raw: str
    payload: Any


@dataclass(frozen=True)
class PlainLine:
    text: str


OutputLine = Union[PlotLine, SchemaLine, DisplayBlockLine, CommandLine, PlainLine]


def split_lines(text: str) -> list[str]:
    """按 \\n 拆分，去掉行尾 \\r；末尾单个换行不产生空行"""
    if not text:
        return []
    if text.endswith("\n"):
        text = text[:-1]
    if not text:
        return []
    return [line[:-1] if line.endswith("\r") else line for line in text.split("\n")]


def parse_line(line: str) -> Optional[OutputLine]:
    """解析单行；绘图 / schema 负载不是合法 JSON 时丢弃该行 (返回 None)"""
    if line.startswith(PLOT_TAG):
        try:
            return PlotLine(json.loads(line[len(PLOT_TAG):]))
        except ValueError:
            logger.warning("绘图数据解析失败，已丢弃")
            return None
    if line.startswith(SCHEMA_TAG):
        try:
            return SchemaLine(json.loads(line[len(SCHEMA_TAG):]))
        except ValueError:
            logger.warning("参数 schema 解析失败，已丢弃")
            return None
    for tag, variant in ((DISPLAY_TAG, DisplayBlockLine), (CMD_TAG, CommandLine)):
        if line.startswith(tag):
            try:
                return variant(raw=line, payload=json.loads(line[len(tag):]))
            except ValueError:
                return PlainLine(line)
    return PlainLine(line)


def parse_stream(text: str) -> Iterator[OutputLine]:
    for line in split_lines(text):
        parsed = parse_line(line)
        if parsed is not None:
            yield parsed


@dataclass
class DemuxedOutput:
    logs: list[str] = field(default_factory=list)
    plotly_data: Any = None
    schema_data: Any = None


def demultiplex(stdout: str) -> DemuxedOutput:
    """将 stdout 拆分为日志、绘图数据与参数 schema"""
    out = DemuxedOutput()
    for item in parse_stream(stdout):
        if isinstance(item, PlotLine):
            out.plotly_data = item.payload
        elif isinstance(item, SchemaLine):
            out.schema_data = item.payload
        elif isinstance(item, (DisplayBlockLine, CommandLine)):
            out.logs.append(item.raw)
        else:
            out.logs.append(item.text)
    return out


__all__ = [
    "PlotLine",
    "SchemaLine",
    "DisplayBlockLine",
    "CommandLine",
    "PlainLine",
    "OutputLine",
    "split_lines",
    "parse_line",
    "parse_stream",
    "DemuxedOutput",
    "demultiplex",
]
