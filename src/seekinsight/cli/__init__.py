"""SeekInsight 命令行工具"""

from .main import main

__all__ = ["main"]
