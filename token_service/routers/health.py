"""健康检查路由"""

import time

from fastapi import APIRouter

from token_service import __version__
from token_service.db import check_health
from token_service.services.broadcaster import get_broadcaster

router = APIRouter(tags=["健康检查"])


@router.get("/health")
async def health():
    """服务健康检查（Redis 不可用时服务仍可降级运行）"""
    db_health = await check_health()
    broadcaster = get_broadcaster()
    return {
        "success": True,
        "data": {
            "status": "ok",
            "version": __version__,
            "timestamp": int(time.time()),
            "service": "Token Aggregator",
            "databases": db_health,
            "broadcaster": {
                "running": broadcaster.running,
                "subscribers": broadcaster.subscriber_count,
                "query": broadcaster.query,
                "interval": broadcaster.interval,
                "event": broadcaster.event,
            },
        },
        "message": "服务运行正常",
    }


@router.get("/healthz")
async def healthz():
    """存活检查"""
    return {"status": "ok"}


@router.get("/readyz")
async def readyz():
    """就绪检查：Redis 缺失时仍可服务"""
    return {"ready": True}
