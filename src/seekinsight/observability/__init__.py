"""可观测性模块 (日志 / 指标)"""

from .logging import configure_logging
from .metrics import setup_metrics

__all__ = ["configure_logging", "setup_metrics"]
