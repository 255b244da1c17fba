# Binds WebSocket connections to order rooms and feeds their frames to the pipeline
import json
import logging
from typing import Any, Optional

from order_chat_service.app.models import ReviewOrderDB, SenderType, ToggleStatus
from order_chat_service.app.service.auth import TokenAuthenticator
from order_chat_service.app.service.chat.models import ChatSession, connection_frame
from order_chat_service.app.service.chat.pipeline import ChatMessagePipeline
from order_chat_service.app.service.chat.registry import ChatSessionRegistry
from order_chat_service.app.service.exceptions import AuthorizationError, OrderNotFoundError, ValidationError
from order_chat_service.app.service.interfaces.order_store import AbstractOrderStore

logger = logging.getLogger(__name__)


class ChatGateway:
    def __init__(
        self,
        authenticator: TokenAuthenticator,
        order_store: AbstractOrderStore,
        registry: ChatSessionRegistry,
        pipeline: ChatMessagePipeline,
    ):
        self.authenticator = authenticator
        self.order_store = order_store
        self.registry = registry
        self.pipeline = pipeline

    async def connect(self, connection: Any, token: Optional[str], order_id: Optional[str], requested_user_type: Optional[str] = None) -> ChatSession:
        """
        Authenticates the handshake and registers the connection in its order room.

        The session's user type comes from the token's role; `requested_user_type`
        is only logged when it disagrees.
        """
        actor = self.authenticator.authenticate(token)
        if not order_id:
            raise ValidationError("orderId is required", field="orderId")

        order: Optional[ReviewOrderDB] = await self.order_store.get_review_order(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        if order.chat_status != ToggleStatus.ENABLED.value:
            raise AuthorizationError("Chat is disabled for this order")
        if order.user_id != actor.id and not actor.is_admin:
            raise AuthorizationError("Not authorized to join this order chat")

        user_type = SenderType.ADMIN.value if actor.is_admin else SenderType.USER.value
        if requested_user_type and requested_user_type != user_type:
            logger.warning(f"Client requested userType '{requested_user_type}' for {actor.id}; using '{user_type}' from role {actor.role}.")

        session = ChatSession(order_id=order_id, user_id=actor.id, user_type=user_type, role=actor.role)
        await self.registry.register(connection, session)
        try:
            await connection.send_json(connection_frame(session))
        except Exception:
            # the client went away before the room was confirmed
            await self.registry.unregister(connection)
            raise
        return session

    async def handle_frame(self, connection: Any, raw: str):
        try:
            event = json.loads(raw)
        except json.JSONDecodeError:
            await self.pipeline.send_error(connection, "Invalid message format", "malformed")
            return None
        if not isinstance(event, dict):
            await self.pipeline.send_error(connection, "Invalid message format", "malformed")
            return None
        return await self.pipeline.handle_event(connection, event)

    async def disconnect(self, connection: Any):
        await self.registry.unregister(connection)
