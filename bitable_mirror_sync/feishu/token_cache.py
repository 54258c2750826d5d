"""
tenant_access_token 缓存

缓存对象由调用方注入（不是模块级全局变量），生命周期跟随持有它的服务。
并发刷新时最坏情况是多一次鉴权请求，不会出现永不过期的旧 token。
"""
import json
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

import redis
from loguru import logger


def now_millis() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class TokenEntry:
    """缓存项"""
    token: str
    expires_at_ms: int

    def is_valid(self, at_ms: Optional[int] = None) -> bool:
        at_ms = now_millis() if at_ms is None else at_ms
        return bool(self.token) and at_ms < self.expires_at_ms


class TokenCache(ABC):
    """token 缓存接口"""

    @abstractmethod
    def get(self, key: str) -> Optional[TokenEntry]:
        """获取未过期的缓存项，过期或不存在返回 None"""
        pass

    @abstractmethod
    def set(self, key: str, entry: TokenEntry) -> None:
        """写入缓存项"""
        pass

    @abstractmethod
    def invalidate(self, key: str) -> None:
        """删除缓存项"""
        pass


class MemoryTokenCache(TokenCache):
    """进程内缓存"""

    def __init__(self):
        self._entries: Dict[str, TokenEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[TokenEntry]:
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or not entry.is_valid():
            return None
        return entry

    def set(self, key: str, entry: TokenEntry) -> None:
        with self._lock:
            self._entries[key] = entry

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)


class RedisTokenCache(TokenCache):
    """Redis 缓存，多个 worker 进程共享同一个 token"""

    def __init__(self, redis_client: redis.Redis, prefix: str = "bitable_token:"):
        self.redis = redis_client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str) -> "RedisTokenCache":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Optional[TokenEntry]:
        try:
            raw = self.redis.get(self._key(key))
        except redis.RedisError as e:
            # Redis 不可用时按未命中处理，重新向飞书申请 token
            logger.warning(f"Redis token cache read failed: {e}")
            return None
        if not raw:
            return None
        try:
            data = json.loads(raw)
            entry = TokenEntry(token=data["token"], expires_at_ms=int(data["expires_at_ms"]))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding malformed cached token for {key}: {e}")
            self.invalidate(key)
            return None
        return entry if entry.is_valid() else None

    def set(self, key: str, entry: TokenEntry) -> None:
        ttl_seconds = max(1, (entry.expires_at_ms - now_millis()) // 1000)
        payload = json.dumps({"token": entry.token, "expires_at_ms": entry.expires_at_ms})
        try:
            self.redis.set(self._key(key), payload, ex=ttl_seconds)
        except redis.RedisError as e:
            logger.warning(f"Redis token cache write failed: {e}")

    def invalidate(self, key: str) -> None:
        try:
            self.redis.delete(self._key(key))
        except redis.RedisError as e:
            logger.warning(f"Redis token cache delete failed: {e}")


def build_token_cache(redis_url: Optional[str]) -> TokenCache:
    """配置了 Redis 时使用 Redis，连接失败时退回内存缓存"""
    if not redis_url:
        return MemoryTokenCache()

    try:
        cache = RedisTokenCache.from_url(redis_url)
        cache.redis.ping()
        logger.info("Redis token cache connected")
        return cache
    except redis.RedisError as e:
        logger.warning(f"Redis connection failed: {e}, using memory token cache")
        return MemoryTokenCache()
