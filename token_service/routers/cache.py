"""
缓存管理路由
GET    /api/cache/stats         - 缓存统计
DELETE /api/cache/tokens?q=     - 清理指定查询词的聚合缓存
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from token_service.config import settings
from token_service.layers.cache import get_cache_layer
from token_service.models.response import ApiResponse
from token_service.services.aggregator_service import AggregatorService, get_aggregator_service

router = APIRouter(prefix="/api/cache", tags=["缓存管理"])


@router.get("/stats", response_model=ApiResponse)
async def cache_stats():
    """获取缓存统计信息"""
    stats = await get_cache_layer().stats()
    return ApiResponse.ok(data=stats)


@router.delete("/tokens", response_model=ApiResponse)
async def clear_tokens_cache(
    q: Optional[str] = Query(default=None),
    svc: AggregatorService = Depends(get_aggregator_service),
):
    """清理某个查询词的聚合缓存，下一次请求将重新拉取上游"""
    query = q or settings.DEFAULT_QUERY
    key = svc.cache_key(query)
    deleted = await svc.invalidate(query)
    if not deleted:
        return ApiResponse.fail(error=f"缓存不存在或 Redis 不可用: {key}", message="缓存清理失败")
    return ApiResponse.ok(data={"key": key, "deleted": deleted}, message=f"缓存已清理: {key}")
