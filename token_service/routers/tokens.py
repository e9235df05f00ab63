"""
代币数据路由
GET /api/tokens?q=<query>   - 聚合后的代币列表（JSON 数组）
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from token_service.config import settings
from token_service.models.response import ErrorResponse
from token_service.services.aggregator_service import AggregatorService, get_aggregator_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tokens", tags=["代币数据"])


@router.get("")
async def list_tokens(
    q: Optional[str] = Query(default=None, description=f"搜索关键词，默认 {settings.DEFAULT_QUERY}"),
    refresh: bool = Query(default=False, description="跳过缓存读取"),
    svc: AggregatorService = Depends(get_aggregator_service),
):
    """获取聚合去重后的代币列表，空结果同样返回 200"""
    query = q or settings.DEFAULT_QUERY
    logger.info(f"API 收到查询: {query}")
    try:
        tokens = await svc.get_aggregated_data(query, force_refresh=refresh)
    except Exception as exc:
        logger.error(f"代币聚合失败（query={query}）: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content=ErrorResponse().model_dump())
    return [token.model_dump() for token in tokens]
