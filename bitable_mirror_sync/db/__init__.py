"""镜像表存储模块"""

from .store import TableStore
from .rest_store import RestTableStore
from .database import MySQLTableStore

__all__ = ["TableStore", "RestTableStore", "MySQLTableStore"]
