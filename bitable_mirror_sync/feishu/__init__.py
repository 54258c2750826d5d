"""飞书多维表格读取模块"""

from .reader import BitableReader
from .token_cache import TokenCache, MemoryTokenCache, RedisTokenCache, TokenEntry, build_token_cache

__all__ = ["BitableReader", "TokenCache", "MemoryTokenCache", "RedisTokenCache", "TokenEntry",
           "build_token_cache"]
