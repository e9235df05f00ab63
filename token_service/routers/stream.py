"""
行情推送路由
WS /ws   - 订阅定时推送的 price-update 事件（客户端可发送 ping 心跳）
"""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from token_service.services.broadcaster import get_broadcaster

logger = logging.getLogger(__name__)

router = APIRouter(tags=["行情推送"])


@router.websocket("/ws")
async def price_stream(websocket: WebSocket):
    broadcaster = get_broadcaster()
    await websocket.accept()
    broadcaster.subscribe(websocket)
    try:
        # 客户端只需保持连接；收到 ping 时回 pong 作为心跳
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        logger.debug(f"WebSocket 断开: {websocket.client}")
    finally:
        broadcaster.unsubscribe(websocket)
