"""
同步异常定义
"""
from typing import Optional


class SyncError(Exception):
    """同步异常基类"""


class ConfigError(SyncError):
    """缺少或非法的配置，本次调用直接失败"""


class AuthError(SyncError):
    """获取 tenant_access_token 失败"""


class FetchError(SyncError):
    """分页读取多维表格记录失败"""


class PersistenceError(SyncError):
    """镜像表 select/upsert/delete 失败"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SyncInProgressError(SyncError):
    """同一进程内已有同步任务在运行"""
