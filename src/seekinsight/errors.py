"""
SeekInsight 异常定义

驱动层异常 (连接失败、SQL 执行失败) 不做包装，原样向上传播。
"""


class SeekInsightError(Exception):
    """基础异常"""


class UnsupportedDatabaseError(SeekInsightError):
    """无法识别的数据库类型 / URI 协议"""


class NotebookNotFoundError(SeekInsightError):
    """笔记本不存在"""

    def __init__(self, notebook_id: str):
        self.notebook_id = notebook_id
        super().__init__(f"Notebook not found: {notebook_id}")


class DatasetNotFoundError(SeekInsightError):
    """示例数据集不存在"""

    def __init__(self, dataset_id: str):
        self.dataset_id = dataset_id
        super().__init__(f"Dataset not found: {dataset_id}")


class ProtectedDatabaseError(SeekInsightError):
    """拒绝对外部或受保护的数据库执行破坏性操作"""


class ProvisioningError(SeekInsightError):
    """启动初始化失败"""


__all__ = [
    "SeekInsightError",
    "UnsupportedDatabaseError",
    "NotebookNotFoundError",
    "DatasetNotFoundError",
    "ProtectedDatabaseError",
    "ProvisioningError",
]
