"""
飞书/Lark 多维表格 -> 关系型镜像表 单向同步
"""

__version__ = "1.0.0"
__author__ = "lory7c"

from .core.sync_service import SyncService, create_service
from .config.config import Config

__all__ = ["SyncService", "create_service", "Config"]
