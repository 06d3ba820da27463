"""
SeekInsight - AI 分析笔记本网关
多方言数据库网关与 Python 代码执行桥
"""

__version__ = "0.1.0"
