# HTTP-side chat operations: history, admin views, posting and synchronous uploads
import logging
from typing import List, Optional

from order_chat_service.app.models import ActiveChatSummary, ChatMessageDB, MessageType, SenderType
from order_chat_service.app.observability import chat_messages_persisted_counter
from order_chat_service.app.service import files
from order_chat_service.app.service.auth import Actor
from order_chat_service.app.service.chat.models import MAX_TEXT_MESSAGE_LENGTH, message_frame
from order_chat_service.app.service.chat.registry import ChatSessionRegistry
from order_chat_service.app.service.exceptions import (
    AuthorizationError,
    ChatMessageNotFoundError,
    OrderNotFoundError,
    ValidationError,
)
from order_chat_service.app.service.interfaces.chat_store import AbstractChatStore
from order_chat_service.app.service.interfaces.object_storage import AbstractObjectStorage
from order_chat_service.app.service.interfaces.order_store import AbstractOrderStore

logger = logging.getLogger(__name__)


def sender_type_for(actor: Actor) -> str:
    return SenderType.ADMIN.value if actor.is_admin else SenderType.USER.value


class ChatService:
    def __init__(
        self,
        chat_store: AbstractChatStore,
        order_store: AbstractOrderStore,
        object_storage: AbstractObjectStorage,
        registry: Optional[ChatSessionRegistry] = None,
    ):
        self.chat_store = chat_store
        self.order_store = order_store
        self.object_storage = object_storage
        self.registry = registry

    async def _check_order_access(self, order_id: str, actor: Actor):
        review = await self.order_store.get_review_order(order_id)
        if review is not None:
            owner_id = review.user_id
        else:
            # Approved orders no longer have a review row; their chat stays readable.
            finalized = await self.order_store.get_finalized_by_review_order(order_id)
            if finalized is None:
                raise OrderNotFoundError(order_id)
            owner_id = finalized.user_id
        if owner_id != actor.id and not actor.is_admin:
            raise AuthorizationError("Not authorized to access this order chat")

    async def get_chat_history(self, order_id: str, actor: Actor) -> List[ChatMessageDB]:
        await self._check_order_access(order_id, actor)
        return await self.chat_store.list_messages_for_order(order_id)

    async def get_all_messages(self) -> List[ChatMessageDB]:
        return await self.chat_store.list_all_messages()

    async def get_user_messages(self, user_id: str) -> List[ChatMessageDB]:
        return await self.chat_store.list_messages_by_sender(user_id)

    async def get_active_users(self) -> List[ActiveChatSummary]:
        return await self.chat_store.list_active_rooms()

    async def post_message(self, order_id: str, content: str, actor: Actor) -> ChatMessageDB:
        text = (content or "").strip()
        if not text:
            raise ValidationError("Message cannot be empty", field="content")
        if len(text) > MAX_TEXT_MESSAGE_LENGTH:
            raise ValidationError(f"Message cannot exceed {MAX_TEXT_MESSAGE_LENGTH} characters", field="content")
        await self._check_order_access(order_id, actor)

        message = ChatMessageDB(
            order_id=order_id,
            sender=actor.id,
            sender_type=sender_type_for(actor),
            message_type=MessageType.TEXT,
            content=text,
        )
        await self.chat_store.insert_message(message)
        chat_messages_persisted_counter.add(1, {"message_type": message.message_type})
        if self.registry is not None:
            await self.registry.broadcast(order_id, message_frame(message))
        return message

    async def delete_message(self, message_id: str) -> ChatMessageDB:
        deleted = await self.chat_store.delete_message(message_id)
        if deleted is None:
            raise ChatMessageNotFoundError(message_id)
        return deleted

    async def upload_file(
        self,
        order_id: str,
        actor: Actor,
        content: bytes,
        filename: str,
        mime_type: Optional[str],
        message: Optional[str] = None,
    ) -> ChatMessageDB:
        """
        Stores an uploaded file as a chat message and returns it.

        Not broadcast: clients pick it up from history.
        """
        upload = files.validate_upload(content, filename, mime_type)
        await self._check_order_access(order_id, actor)

        stored = await self.object_storage.put(upload.content, upload.name, upload.mime_type)
        chat_message = ChatMessageDB(
            order_id=order_id,
            sender=actor.id,
            sender_type=sender_type_for(actor),
            message_type=files.message_type_for(upload.mime_type),
            content=(message or "").strip() or upload.name,
            file_url=stored.url,
            file_key=stored.key,
            file_name=upload.name,
            file_size=upload.size,
            mime_type=upload.mime_type,
        )
        await self.chat_store.insert_message(chat_message)
        chat_messages_persisted_counter.add(1, {"message_type": chat_message.message_type})
        logger.info(f"Stored uploaded file {stored.key} as chat message {chat_message.id} in order room {order_id}")
        return chat_message
