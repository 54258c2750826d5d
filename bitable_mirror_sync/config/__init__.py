"""配置模块"""

from .config import Config, FeishuConfig, StoreConfig, SyncConfig, RedisConfig, MonitorConfig

__all__ = ["Config", "FeishuConfig", "StoreConfig", "SyncConfig", "RedisConfig", "MonitorConfig"]
