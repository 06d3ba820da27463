"""
内置示例数据集

每个数据集在主库中以 "<prefix>_" 前缀的表存放，
导入时复制到目标库并去掉前缀 (retail_orders -> orders)。
"""

from dataclasses import asdict, dataclass
from importlib import resources
from typing import Any, Optional

import structlog

from ..config.settings import Settings
from ..db.pool import PoolRegistry
from ..errors import DatasetNotFoundError, UnsupportedDatabaseError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Dataset:
    """示例数据集描述"""
    id: str
    name: str
    description: str
    icon: str
    color: str
    prefix: str
    topic_name: str

    @property
    def script_name(self) -> str:
        return f"{self.id}.sql"

    def to_dict(self) -> dict:
        data = asdict(self)
        data["topicName"] = data.pop("topic_name")
        return data


DATASETS: tuple[Dataset, ...] = (
    Dataset(
        id="retail",
        name="Retail / E-commerce",
        description="Orders, products, and customer data for sales analysis.",
        icon="ShoppingCart",
        color="text-orange-500",
        prefix="retail",
        topic_name="Quarterly Sales Review",
    ),
    Dataset(
        id="hr",
        name="HR / Workforce",
        description="Employee demographics, departments, and salary history.",
        icon="Users",
        color="text-blue-500",
        prefix="hr",
        topic_name="Workforce Demographics",
    ),
    Dataset(
        id="movies",
        name="Movies & Reviews",
        description="Movie database with user reviews for sentiment analysis.",
        icon="Film",
        color="text-purple-500",
        prefix="movies",
        topic_name="Content Sentiment Analysis",
    ),
    Dataset(
        id="saas",
        name="SaaS Metrics",
        description="Subscription logs and daily active user counts.",
        icon="Activity",
        color="text-green-500",
        prefix="saas",
        topic_name="Churn & Growth Metrics",
    ),
)


def get_dataset(dataset_id: str) -> Dataset:
    for dataset in DATASETS:
        if dataset.id == dataset_id:
            return dataset
    raise DatasetNotFoundError(dataset_id)


def load_dataset_script(dialect_name: str, dataset: Dataset) -> Optional[str]:
    """读取打包在 seekinsight/datasets/<dialect>/ 下的建表脚本"""
    script = resources.files("seekinsight.datasets").joinpath(dialect_name, dataset.script_name)
    if not script.is_file():
        return None
    return script.read_text(encoding="utf-8")


class DatasetService:
    """数据集加载与导入"""

    def __init__(self, settings: Settings, pools: PoolRegistry):
        self.settings = settings
        self.pools = pools
        self.dialect = pools.dialect

    def list_datasets(self) -> list[dict]:
        return [d.to_dict() for d in DATASETS]

    async def _master_tables(self, master_pool: Any, dataset: Dataset) -> list[str]:
        prefix = f"{dataset.prefix}_"
        return [
            t for t in await self.dialect.list_base_tables(master_pool)
            if t.startswith(prefix) and len(t) > len(prefix)
        ]

    async def load_master_datasets(self) -> list[str]:
        """将数据集脚本加载到主库 (已有前缀表的数据集跳过)"""
        master_pool = await self.pools.get_or_create(self.settings.master_database)
        loaded = []
        for dataset in DATASETS:
            if await self._master_tables(master_pool, dataset):
                logger.debug("数据集已存在，跳过", dataset=dataset.id)
                continue
            script = load_dataset_script(self.dialect.name, dataset)
            if script is None:
                logger.warning("数据集脚本缺失", dataset=dataset.id, dialect=self.dialect.name)
                continue
            await self.dialect.execute_script(master_pool, script)
            loaded.append(dataset.id)
            logger.info("数据集已加载", dataset=dataset.id)
        return loaded

    async def import_dataset(self, identifier: str, dataset_id: str) -> tuple[Dataset, list[str]]:
        """
        将数据集复制到目标库

        同名表会被替换。返回 (数据集, 导入后的表名列表)。
        """
        dataset = get_dataset(dataset_id)
        dialect = self.pools.dialect_for(identifier)
        if dialect.name != self.dialect.name:
            raise UnsupportedDatabaseError(
                f"Datasets are stored in {self.dialect.name} and cannot be imported into {dialect.name}"
            )
        master_db = self.settings.master_database
        master_pool = await self.pools.get_or_create(master_db)
        target_pool = await self.pools.get_or_create(identifier)

        imported = []
        for source_table in await self._master_tables(master_pool, dataset):
            target_table = source_table[len(dataset.prefix) + 1:]
            await dialect.copy_table(
                master_pool, master_db, source_table,
                target_pool, identifier, target_table,
                replace=True,
            )
            imported.append(target_table)
        logger.info("数据集已导入", dataset=dataset.id, tables=imported)
        return dataset, imported


__all__ = ["Dataset", "DATASETS", "DatasetService", "get_dataset", "load_dataset_script"]
