"""数据库初始化与笔记本生命周期"""

from .bootstrap import SystemProvisioner
from .datasets import DATASETS, Dataset, DatasetService, get_dataset
from .demo import generate_fitness_data
from .notebooks import NotebookService
from .registry import NotebookRegistry

__all__ = [
    "SystemProvisioner",
    "DATASETS",
    "Dataset",
    "DatasetService",
    "get_dataset",
    "generate_fitness_data",
    "NotebookService",
    "NotebookRegistry",
]
