"""
网关组件容器

集中创建并持有连接池注册表及依赖它的各个服务，
通过 app.state 注入到路由处理函数中。
"""

from typing import Optional

import structlog

from .config.settings import Settings, get_settings
from .db.executor import SqlExecutor
from .db.introspector import SchemaIntrospector
from .db.pool import PoolRegistry
from .provision.bootstrap import SystemProvisioner
from .provision.datasets import DatasetService
from .provision.notebooks import NotebookService
from .provision.registry import NotebookRegistry
from .sandbox.bridge import PythonBridge

logger = structlog.get_logger(__name__)


class Gateway:
    """组件装配"""

    def __init__(self, settings: Optional[Settings] = None, pools: Optional[PoolRegistry] = None):
        self.settings = settings or get_settings()
        self.pools = pools or PoolRegistry.from_settings(self.settings)
        self.executor = SqlExecutor(self.pools)
        self.introspector = SchemaIntrospector(self.pools)
        self.bridge = PythonBridge(self.settings, self.pools)
        self.registry = NotebookRegistry(self.settings, self.pools)
        self.datasets = DatasetService(self.settings, self.pools)
        self.notebooks = NotebookService(self.settings, self.pools, self.registry, self.introspector)
        self.provisioner = SystemProvisioner(self.settings, self.pools, self.registry, self.datasets)

    @property
    def dialect(self):
        return self.pools.dialect

    async def list_databases(self) -> list[str]:
        """列出非系统物理库"""
        names = await self.dialect.list_databases()
        return [n for n in names if not self.dialect.is_protected(n)]

    async def close(self) -> None:
        await self.pools.close_all()


__all__ = ["Gateway"]
