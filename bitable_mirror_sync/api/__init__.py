"""HTTP 接口模块"""

from .app import create_app

__all__ = ["create_app"]
