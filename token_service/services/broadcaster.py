"""
行情推送服务
按固定间隔对固定查询词调用聚合服务，将结果以命名事件推送给所有 WebSocket 订阅者。
推送失败只记日志，不影响 HTTP 请求处理。
"""

import asyncio
import json
import logging
from typing import Any, Optional, Set

from token_service.config import settings
from token_service.services.aggregator_service import AggregatorService, get_aggregator_service

logger = logging.getLogger(__name__)


class PriceBroadcaster:
    """定时推送器：每个 tick 独立调度，不防止前一个 tick 尚未结束时重叠执行"""

    def __init__(
        self,
        service: AggregatorService,
        query: Optional[str] = None,
        interval: Optional[float] = None,
        event: Optional[str] = None,
    ):
        self._service = service
        self.query = query or settings.BROADCAST_QUERY
        self.interval = interval if interval is not None else settings.BROADCAST_INTERVAL
        self.event = event or settings.BROADCAST_EVENT
        self._subscribers: Set[Any] = set()
        self._loop_task: Optional[asyncio.Task] = None
        self._ticks: Set[asyncio.Task] = set()

    # ── 订阅者管理 ────────────────────────────────────────

    def subscribe(self, websocket: Any) -> None:
        self._subscribers.add(websocket)
        logger.info(f"订阅者已连接，当前 {len(self._subscribers)} 个")

    def unsubscribe(self, websocket: Any) -> None:
        self._subscribers.discard(websocket)
        logger.info(f"订阅者已断开，当前 {len(self._subscribers)} 个")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    # ── 推送 ──────────────────────────────────────────────

    async def tick(self) -> int:
        """执行一次拉取 + 推送，返回成功送达的订阅者数量"""
        try:
            tokens = await self._service.get_aggregated_data(self.query)
            message = json.dumps(
                {"event": self.event, "data": [token.model_dump() for token in tokens]},
                ensure_ascii=False,
            )
        except Exception as exc:
            logger.error(f"推送数据获取失败: {exc}", exc_info=True)
            return 0
        return await self.broadcast(message)

    async def broadcast(self, message: str) -> int:
        delivered = 0
        for websocket in list(self._subscribers):
            try:
                await websocket.send_text(message)
                delivered += 1
            except Exception as exc:
                logger.warning(f"向订阅者推送失败，移除该连接: {exc}")
                self._subscribers.discard(websocket)
        return delivered

    # ── 生命周期 ──────────────────────────────────────────

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            task = asyncio.create_task(self.tick())
            self._ticks.add(task)
            task.add_done_callback(self._ticks.discard)

    def start(self) -> None:
        if self._loop_task is None or self._loop_task.done():
            self._loop_task = asyncio.create_task(self._run())
            logger.info(f"📡 行情推送已启动: query={self.query} 间隔={self.interval}s 事件={self.event}")

    async def stop(self) -> None:
        tasks = list(self._ticks)
        if self._loop_task is not None:
            tasks.append(self._loop_task)
            self._loop_task = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("行情推送已停止")


# ── 模块级别单例 ──────────────────────────────────────────
_broadcaster: Optional[PriceBroadcaster] = None


def get_broadcaster() -> PriceBroadcaster:
    global _broadcaster
    if _broadcaster is None:
        _broadcaster = PriceBroadcaster(get_aggregator_service())
    return _broadcaster
