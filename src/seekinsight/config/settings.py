"""
SeekInsight 配置管理模块
使用 Pydantic Settings 管理所有配置
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """应用配置类"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================
    # 应用配置
    # ============================================
    si_debug_mode: bool = True
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3001
    cors_origins: str = "*"

    # ============================================
    # 数据库配置
    # ============================================
    db_type: Literal["mysql", "postgres"] = "mysql"

    # MySQL
    mysql_host: str = Field(
        default="127.0.0.1",
        validation_alias=AliasChoices("mysql_host", "mysql_ip"),
    )
    mysql_port: int = 3306
    mysql_user: str = "root"
    mysql_password: str = ""

    # PostgreSQL
    pg_host: str = "127.0.0.1"
    pg_port: int = 5432
    pg_user: str = "postgres"
    pg_password: str = "postgres"

    # 系统库 / 数据集主库 / 演示库
    system_database: str = "seekinsight"
    master_database: str = "seekinsight_datasets"
    demo_database: str = "seekinsight_demo"

    # 每个逻辑库的连接池上限
    pool_max_size: int = 10

    # ============================================
    # LLM 配置 (透传给 Python 子进程)
    # ============================================
    llm_api_key: str = ""
    llm_base_url: str = "https://api.openai.com/v1"
    llm_model: str = "gpt-4o-mini"

    # ============================================
    # Python 执行桥配置
    # ============================================
    python_executable: Optional[str] = Field(
        default=None,
        description="解释器路径覆盖 (默认优先使用项目 .venv)",
    )
    python_workdir: str = "."
    # 0 表示不限制
    python_timeout_seconds: float = 300
    python_connect_timeout: int = 10

    # ============================================
    # 初始化配置
    # ============================================
    init_lock_file: str = ".init_lock"

    @field_validator("db_type", mode="before")
    @classmethod
    def _normalize_db_type(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
            if value in ("postgresql", "pg"):
                return "postgres"
        return value

    @property
    def is_debug(self) -> bool:
        return self.si_debug_mode

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.si_debug_mode else self.log_level.upper()

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def workdir_path(self) -> Path:
        return Path(self.python_workdir).resolve()

    @property
    def lock_file_path(self) -> Path:
        path = Path(self.init_lock_file)
        if not path.is_absolute():
            path = self.workdir_path / path
        return path


@lru_cache
def get_settings() -> Settings:
    """获取配置单例"""
    return Settings()


def clear_settings_cache() -> None:
    """清除配置缓存 (测试用)"""
    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "clear_settings_cache"]
