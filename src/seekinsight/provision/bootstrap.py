"""
系统初始化

每次启动都会确认系统库 / 主库存在并执行待应用的迁移；
数据集加载与演示数据写入代价较高，由哨兵文件保护只执行一次。
哨兵在全部成功后才写入，失败或进程中途崩溃时下次启动重试。
"""

import json
from datetime import datetime
from pathlib import Path

import structlog

from ..config.settings import Settings
from ..constants import DEMO_APP_ID, DEMO_NOTEBOOK_ID, DEMO_TABLE
from ..db.migrations import MigrationRunner
from ..db.pool import PoolRegistry
from ..errors import ProvisioningError
from .datasets import DatasetService
from .demo import (
    DEMO_APP_PROMPT,
    DEMO_APP_SQL,
    FITNESS_COLUMNS,
    FITNESS_DDL,
    demo_app_snapshot,
    generate_fitness_data,
)
from .registry import NotebookRegistry

logger = structlog.get_logger(__name__)


class SystemProvisioner:
    """启动时的幂等初始化流程"""

    def __init__(
        self,
        settings: Settings,
        pools: PoolRegistry,
        registry: NotebookRegistry,
        datasets: DatasetService,
    ):
        self.settings = settings
        self.pools = pools
        self.registry = registry
        self.datasets = datasets
        self.dialect = pools.dialect

    @property
    def lock_file(self) -> Path:
        return self.settings.lock_file_path

    async def ensure_system_databases(self) -> None:
        for name in (self.settings.system_database, self.settings.master_database):
            await self.dialect.create_database(name, if_not_exists=True)

    async def migrate(self) -> list[int]:
        pool = await self.pools.get_or_create(self.settings.system_database)
        return await MigrationRunner(self.dialect).run(pool)

    async def seed_demo(self) -> None:
        """创建演示库、生成健康数据并登记演示笔记本与应用"""
        demo_db = self.settings.demo_database
        await self.dialect.create_database(demo_db, if_not_exists=True)
        demo_pool = await self.pools.get_or_create(demo_db)

        await self.dialect.execute_script(demo_pool, f"DROP TABLE IF EXISTS {DEMO_TABLE}")
        await self.dialect.execute_script(demo_pool, FITNESS_DDL[self.dialect.name])
        rows = generate_fitness_data()
        await self.dialect.insert_rows(demo_pool, DEMO_TABLE, FITNESS_COLUMNS, rows)
        logger.info("演示数据已生成", rows=len(rows))

        if await self.registry.get_notebook(DEMO_NOTEBOOK_ID) is None:
            # 演示库共享给所有人，登记为非自有，删除笔记本时不会删库
            await self.registry.insert_notebook(
                DEMO_NOTEBOOK_ID,
                demo_db,
                "Health Tracker Demo",
                "Activity",
                is_owner=False,
                views=120,
            )

        if not await self.registry.app_exists(DEMO_APP_ID):
            snapshot = demo_app_snapshot(datetime.now().strftime("%H:%M:%S"))
            await self.registry.insert_app({
                "id": DEMO_APP_ID,
                "title": "Yearly Health Habits Review",
                "description": (
                    "Comparative analysis of activity, sleep, and caloric intake "
                    "across 4 different personas."
                ),
                "prompt": DEMO_APP_PROMPT,
                "author": "SeekInsight Demo",
                "type": "SQL",
                "code": DEMO_APP_SQL,
                "source_db_name": demo_db,
                "source_notebook_id": DEMO_NOTEBOOK_ID,
                "snapshot_json": json.dumps(snapshot),
                "views": 350,
            })

    async def provision(self) -> bool:
        """
        执行初始化

        返回是否执行了数据填充 (哨兵文件已存在时为 False)。
        失败时抛出 ProvisioningError。
        """
        logger.info("系统初始化开始", dialect=self.dialect.name)
        seeding = False
        try:
            await self.ensure_system_databases()
            applied = await self.migrate()
            if applied:
                logger.info("Schema 迁移完成", versions=applied)

            if self.lock_file.exists():
                logger.info("检测到初始化哨兵，跳过数据填充", lock_file=str(self.lock_file))
                return False

            seeding = True
            loaded = await self.datasets.load_master_datasets()
            await self.seed_demo()

            # 全部成功后才写哨兵，中途崩溃的进程下次启动会重新填充
            self.lock_file.parent.mkdir(parents=True, exist_ok=True)
            self.lock_file.write_text(datetime.now().isoformat(), encoding="utf-8")
            logger.info("系统初始化完成", datasets=loaded)
            return True
        except Exception as e:
            if seeding:
                self.lock_file.unlink(missing_ok=True)
            logger.error("系统初始化失败", error=str(e), exc_info=True)
            raise ProvisioningError(f"System initialization failed: {e}") from e


__all__ = ["SystemProvisioner"]
