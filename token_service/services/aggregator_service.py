"""
代币聚合服务
整合数据获取、缓存、处理三层：缓存优先读取，未命中时并发拉取两个数据源、
去重合并后写回缓存。
"""

import asyncio
import logging
from typing import List, Optional

from pydantic import ValidationError

from token_service.config import settings
from token_service.layers.acquisition import DexScreenerAdapter, JupiterAdapter, SourceAdapter
from token_service.layers.cache import CacheLayer, get_cache_layer, make_key
from token_service.layers.processing import deserialize_tokens, merge_tokens, serialize_tokens
from token_service.models.token import TokenRecord

logger = logging.getLogger(__name__)


class AggregatorService:
    """代币聚合业务服务，依赖通过构造函数注入"""

    def __init__(
        self,
        primary: SourceAdapter,
        secondary: SourceAdapter,
        cache: CacheLayer,
        ttl: Optional[int] = None,
        key_prefix: Optional[str] = None,
        enrich: bool = False,
    ):
        self._primary = primary
        self._secondary = secondary
        self._cache = cache
        self._ttl = ttl if ttl is not None else settings.CACHE_TTL
        self._key_prefix = key_prefix or settings.CACHE_KEY_PREFIX
        self._enrich = enrich

    def cache_key(self, query: str) -> str:
        return make_key(self._key_prefix, query)

    async def invalidate(self, query: str) -> bool:
        """删除某个查询词的缓存条目"""
        return await self._cache.delete(self.cache_key(query))

    async def get_aggregated_data(
        self, query: str, force_refresh: bool = False
    ) -> List[TokenRecord]:
        """
        获取指定查询词的聚合代币列表

        Args:
            query: 搜索关键词，原样参与缓存键（不做大小写规范化）
            force_refresh: 跳过缓存读取，强制拉取上游
        """
        key = self.cache_key(query)

        if not force_refresh:
            cached = await self._cache.get(key)
            if cached is not None:
                try:
                    tokens = deserialize_tokens(cached)
                except ValidationError as exc:
                    logger.warning(f"缓存内容无法解析，按未命中处理: {key}: {exc}")
                else:
                    logger.info(f"返回缓存数据: {key}（{len(tokens)} 条）")
                    return tokens

        logger.info(f"缓存未命中，并发拉取两个数据源: {query}")
        primary_tokens, secondary_tokens = await asyncio.gather(
            self._primary.fetch(query),
            self._secondary.fetch(query),
        )
        logger.info(
            f"{self._primary.name} 返回 {len(primary_tokens)} 条，"
            f"{self._secondary.name} 返回 {len(secondary_tokens)} 条"
        )

        merged = merge_tokens(primary_tokens, secondary_tokens, enrich=self._enrich)
        logger.info(f"合并后共 {len(merged)} 个唯一代币")

        await self._cache.set(key, serialize_tokens(merged), ttl=self._ttl)
        return merged


# ── 模块级别单例 ──────────────────────────────────────────
_aggregator_service: Optional[AggregatorService] = None


def get_aggregator_service() -> AggregatorService:
    global _aggregator_service
    if _aggregator_service is None:
        _aggregator_service = AggregatorService(
            primary=DexScreenerAdapter(),
            secondary=JupiterAdapter(),
            cache=get_cache_layer(),
            enrich=settings.MERGE_ENRICH_FIELDS,
        )
    return _aggregator_service
