"""HTTP 接口"""

from .routes import router

__all__ = ["router"]
