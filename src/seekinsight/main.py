"""
SeekInsight 应用入口
FastAPI 应用主文件
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routes import router
from .config.settings import get_settings
from .errors import ProvisioningError
from .gateway import Gateway
from .observability.logging import configure_logging
from .observability.metrics import setup_metrics

logger = structlog.get_logger(__name__)


def create_app(gateway: Optional[Gateway] = None, provision: bool = True) -> FastAPI:
    """
    创建 FastAPI 应用

    gateway 为空时按配置创建；provision 为 False 时跳过启动初始化 (测试用)。
    """
    settings = gateway.settings if gateway is not None else get_settings()
    configure_logging(settings.effective_log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """应用生命周期管理"""
        gw = gateway or Gateway(settings)
        app.state.gateway = gw

        logger.info("SeekInsight 启动中...", dialect=gw.dialect.name, debug=settings.is_debug)
        if provision:
            try:
                await gw.provisioner.provision()
            except ProvisioningError as e:
                # 哨兵已删除，下次启动重试；服务继续对外提供
                logger.error("初始化失败，服务继续运行", error=str(e))

        yield

        logger.info("SeekInsight 关闭中...")
        await gw.close()
        logger.info("SeekInsight 已关闭")

    app = FastAPI(
        title="SeekInsight Gateway",
        description="多方言数据库网关与 Python 代码执行桥",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_metrics(app)
    app.include_router(router)

    return app


def run() -> None:
    """以 uvicorn 启动服务"""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "seekinsight.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=False,
    )


if __name__ == "__main__":
    run()
