"""
Token Aggregator 服务
独立 FastAPI 应用程序入口

启动方式:
    uvicorn token_service.main:app --host 0.0.0.0 --port 3000
    python -m token_service.main
"""

import logging
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from token_service import __version__
from token_service.config import settings
from token_service.db import init_redis, close_connections
from token_service.models.response import ErrorResponse
from token_service.routers import health, tokens, stream, cache
from token_service.services.broadcaster import get_broadcaster

# ── 日志配置 ──────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ── 生命周期管理 ──────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用启动/关闭生命周期钩子"""
    logger.info("=" * 60)
    logger.info(f"🚀 Token Aggregator v{__version__} 启动中")
    logger.info(f"   Redis       : {settings.REDIS_HOST}:{settings.REDIS_PORT}")
    logger.info(f"   DexScreener : {settings.DEXSCREENER_API}")
    logger.info(f"   Jupiter     : {settings.JUPITER_API}")
    logger.info(f"   Cache TTL   : {settings.CACHE_TTL}s")
    logger.info("=" * 60)

    # 初始化 Redis（失败不阻断启动，降级为无缓存模式）
    if await init_redis():
        logger.info("✅ 缓存就绪")
    else:
        logger.warning("⚠️ Redis 不可用，每次请求都将直接拉取上游数据")

    broadcaster = get_broadcaster()
    if settings.BROADCAST_ENABLED:
        broadcaster.start()

    yield

    logger.info("🔄 Token Aggregator 正在关闭...")
    await broadcaster.stop()
    await close_connections()
    logger.info("✅ Token Aggregator 已关闭")


# ── 应用实例 ──────────────────────────────────────────────
app = FastAPI(
    title="Token Aggregator",
    description=(
        "代币行情聚合微服务：\n"
        "- 🔎 DexScreener + Jupiter 双数据源并发拉取\n"
        "- 🧬 按地址去重，DexScreener 数据优先\n"
        "- 🗄️ Redis 缓存（默认 30 秒）\n"
        "- 📡 WebSocket 定时推送 price-update 事件\n\n"
        "**分层架构**\n"
        "```\n"
        "Acquisition Layer  ← 从 DexScreener / Jupiter 拉取原始数据\n"
        "Cache Layer        ← Redis 缓存\n"
        "Processing Layer   ← 去重合并、序列化\n"
        "```"
    ),
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS 中间件 ───────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── 请求计时中间件 ─────────────────────────────────────────
@app.middleware("http")
async def add_process_time(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    response.headers["X-Process-Time"] = f"{(time.time() - start) * 1000:.1f}ms"
    return response


# ── 全局异常处理 ──────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"未处理的异常: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content=ErrorResponse().model_dump())


# ── 注册路由 ──────────────────────────────────────────────
app.include_router(health.router)
app.include_router(tokens.router)
app.include_router(cache.router)
app.include_router(stream.router)


# ── 根路由 ───────────────────────────────────────────────
@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": "Token Aggregator",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "tokens": f"/api/tokens?q={settings.DEFAULT_QUERY}",
        "stream": "/ws",
    }


# ── 直接运行入口 ──────────────────────────────────────────
if __name__ == "__main__":
    uvicorn.run(
        "token_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
