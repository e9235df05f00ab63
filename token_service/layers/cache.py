"""
Layer 2 – 缓存层
基于 Redis 的键值缓存，过期由 Redis 自身负责（SETEX）。
Redis 不可用时降级为「永远未命中 / 写入无操作」，错误只记日志不向上抛。
"""

import logging
from typing import Callable, Optional

from redis.asyncio import Redis

from token_service.config import settings
from token_service.db import get_redis

logger = logging.getLogger(__name__)


def make_key(namespace: str, *parts: str) -> str:
    """生成缓存键：namespace:part1:part2，原样拼接不做大小写规范化"""
    return ":".join([namespace] + list(parts))


class CacheLayer:
    """Redis 缓存层，每次操作时取当前连接，连接缺失即视为降级"""

    def __init__(self, redis_getter: Callable[[], Optional[Redis]] = get_redis):
        self._redis_getter = redis_getter

    async def get(self, key: str) -> Optional[str]:
        redis = self._redis_getter()
        if redis is None:
            logger.debug(f"Redis 不可用，按未命中处理: {key}")
            return None
        try:
            raw = await redis.get(key)
        except Exception as exc:
            logger.warning(f"Redis 读取失败，按未命中处理: {key}: {exc}")
            return None
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        logger.debug(f"缓存命中（Redis）: {key}")
        return raw

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        if ttl is None:
            ttl = settings.CACHE_TTL
        redis = self._redis_getter()
        if redis is None:
            logger.debug(f"Redis 不可用，跳过缓存写入: {key}")
            return False
        try:
            await redis.setex(key, ttl, value)
        except Exception as exc:
            logger.warning(f"Redis 写入失败: {key}: {exc}")
            return False
        logger.debug(f"缓存写入（Redis）: {key} ttl={ttl}s")
        return True

    async def delete(self, key: str) -> bool:
        redis = self._redis_getter()
        if redis is None:
            return False
        try:
            return bool(await redis.delete(key))
        except Exception as exc:
            logger.warning(f"Redis 删除失败: {key}: {exc}")
            return False

    async def stats(self) -> dict:
        """返回缓存后端统计信息"""
        redis = self._redis_getter()
        if redis is None:
            return {"redis": {"status": "disabled"}}
        try:
            return {"redis": {"keys": await redis.dbsize(), "status": "healthy"}}
        except Exception as exc:
            return {"redis": {"status": "error", "error": str(exc)}}


# ── 模块级别单例 ──────────────────────────────────────────
_cache: Optional[CacheLayer] = None


def get_cache_layer() -> CacheLayer:
    global _cache
    if _cache is None:
        _cache = CacheLayer()
    return _cache
