"""
In-process registry of live chat connections.

Maps each open connection to the order room and identity it was bound to at
handshake. Only connections held by this process are known here; a message
sent on one instance does not reach peers connected to another instance.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from starlette.websockets import WebSocketDisconnect, WebSocketState

from order_chat_service.app.observability import chat_connections_gauge
from order_chat_service.app.service.chat.models import ChatSession

logger = logging.getLogger(__name__)


def websocket_is_open(connection: Any) -> bool:
    return (
        connection.client_state == WebSocketState.CONNECTED
        and connection.application_state == WebSocketState.CONNECTED
    )


class ChatSessionRegistry:
    def __init__(self, is_open: Callable[[Any], bool] = websocket_is_open):
        self._sessions: Dict[Any, ChatSession] = {}
        self._lock = asyncio.Lock()
        self.is_open = is_open

    async def register(self, connection: Any, session: ChatSession):
        async with self._lock:
            is_new = connection not in self._sessions
            self._sessions[connection] = session
        if is_new:
            chat_connections_gauge.add(1)
        logger.info(f"Chat connection registered: user {session.user_id} ({session.user_type}) in order room {session.order_id}")

    async def unregister(self, connection: Any) -> Optional[ChatSession]:
        """Removes the connection. Safe when it was never registered."""
        async with self._lock:
            session = self._sessions.pop(connection, None)
        if session is not None:
            chat_connections_gauge.add(-1)
            logger.info(f"Chat connection unregistered: user {session.user_id} left order room {session.order_id}")
        return session

    async def get(self, connection: Any) -> Optional[ChatSession]:
        async with self._lock:
            return self._sessions.get(connection)

    async def connection_count(self) -> int:
        async with self._lock:
            return len(self._sessions)

    async def broadcast(self, order_id: str, payload: Dict[str, Any]) -> int:
        """
        Sends `payload` to every open connection bound to `order_id`.

        Members are snapshotted under the lock and sent to outside it, so a slow
        peer never blocks register/unregister. Closed transports are skipped;
        they are removed by their own disconnect handling.

        Returns:
            The number of connections the payload was delivered to.
        """
        async with self._lock:
            targets = [conn for conn, session in self._sessions.items() if session.order_id == order_id]

        delivered = 0
        for connection in targets:
            if not self.is_open(connection):
                continue
            try:
                await connection.send_json(payload)
            except (WebSocketDisconnect, RuntimeError, ConnectionError) as e:
                logger.debug(f"Skipping chat peer in order room {order_id} that went away mid-broadcast: {e}")
                continue
            delivered += 1
        logger.debug(f"Broadcast to order room {order_id}: {delivered}/{len(targets)} connection(s).")
        return delivered
