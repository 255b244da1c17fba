# WebSocket endpoint for live order chat rooms
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from order_chat_service.app.dependencies.services import get_chat_gateway
from order_chat_service.app.service.chat.gateway import ChatGateway
from order_chat_service.app.service.chat.models import error_frame
from order_chat_service.app.service.exceptions import BaseOrderServiceError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/chat", tags=["Chat"])


@router.websocket("/ws")
async def chat_websocket(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    order_id: Optional[str] = Query(None, alias="orderId"),
    user_type: Optional[str] = Query(None, alias="userType"),
    gateway: ChatGateway = Depends(get_chat_gateway),
):
    await websocket.accept()
    try:
        await gateway.connect(websocket, token, order_id, user_type)
    except BaseOrderServiceError as e:
        logger.info(f"Chat handshake rejected for order {order_id}: {e.message}")
        await websocket.send_json(error_frame(e.message))
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    except WebSocketDisconnect as e:
        logger.info(f"Chat client for order {order_id} dropped during the handshake (code {e.code}).")
        return

    try:
        while True:
            raw = await websocket.receive_text()
            await gateway.handle_frame(websocket, raw)
    except WebSocketDisconnect as e:
        logger.info(f"Chat connection for order {order_id} closed (code {e.code}).")
    finally:
        await gateway.disconnect(websocket)
