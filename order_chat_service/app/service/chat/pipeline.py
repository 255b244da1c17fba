# Chat Message Pipeline: validate, upload, persist, then broadcast one inbound event
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from order_chat_service.app.models import ChatMessageDB, MessageType
from order_chat_service.app.observability import chat_events_rejected_counter, chat_messages_persisted_counter, tracer
from order_chat_service.app.service import files
from order_chat_service.app.service.chat.models import (
    MAX_TEXT_MESSAGE_LENGTH,
    InboundChatFrame,
    error_frame,
    message_frame,
)
from order_chat_service.app.service.chat.registry import ChatSessionRegistry
from order_chat_service.app.service.exceptions import FileValidationError, ObjectStorageError
from order_chat_service.app.service.interfaces.chat_store import AbstractChatStore
from order_chat_service.app.service.interfaces.object_storage import AbstractObjectStorage

logger = logging.getLogger(__name__)


class ChatMessagePipeline:
    def __init__(self, registry: ChatSessionRegistry, chat_store: AbstractChatStore, object_storage: AbstractObjectStorage):
        self.registry = registry
        self.chat_store = chat_store
        self.object_storage = object_storage

    async def send_error(self, connection: Any, detail: str, reason: str):
        """Reports a rejected event to the originating connection only."""
        chat_events_rejected_counter.add(1, {"reason": reason})
        logger.info(f"Rejected chat event ({reason}): {detail}")
        if self.registry.is_open(connection):
            await connection.send_json(error_frame(detail))

    async def handle_event(self, connection: Any, event: Dict[str, Any]) -> Optional[ChatMessageDB]:
        """
        Runs one inbound event through the pipeline.

        Returns the persisted message, or None when the event was rejected. Nothing
        is broadcast unless the message was persisted first.
        """
        session = await self.registry.get(connection)
        if session is None:
            await self.send_error(connection, "Not connected to an order chat", "unbound")
            return None

        try:
            frame = InboundChatFrame.model_validate(event)
        except PydanticValidationError:
            await self.send_error(connection, "Invalid message format", "malformed")
            return None

        with tracer.start_as_current_span("chat.handle_event") as span:
            span.set_attribute("chat.order_id", session.order_id)
            span.set_attribute("chat.has_file", frame.file is not None)

            if frame.file is not None:
                try:
                    upload = files.validate_chat_file(frame.file.data, frame.file.name, frame.file.type, frame.file.size)
                except FileValidationError as e:
                    await self.send_error(connection, e.message, "file_validation")
                    return None
                try:
                    stored = await self.object_storage.put(upload.content, upload.name, upload.mime_type)
                except ObjectStorageError as e:
                    logger.error(f"Chat upload for order room {session.order_id} failed: {e.message}")
                    await self.send_error(connection, e.public_message, "upload")
                    return None
                message = ChatMessageDB(
                    order_id=session.order_id,
                    sender=session.user_id,
                    sender_type=session.user_type,
                    message_type=files.message_type_for(upload.mime_type),
                    content=upload.name,
                    file_url=stored.url,
                    file_key=stored.key,
                    file_name=upload.name,
                    file_size=upload.size,
                    mime_type=upload.mime_type,
                )
            else:
                text = (frame.message or "").strip()
                if not text:
                    await self.send_error(connection, "Message cannot be empty", "empty")
                    return None
                if len(text) > MAX_TEXT_MESSAGE_LENGTH:
                    await self.send_error(connection, f"Message cannot exceed {MAX_TEXT_MESSAGE_LENGTH} characters", "too_long")
                    return None
                message = ChatMessageDB(
                    order_id=session.order_id,
                    sender=session.user_id,
                    sender_type=session.user_type,
                    message_type=MessageType.TEXT,
                    content=text,
                )

            try:
                await self.chat_store.insert_message(message)
            except Exception as e:
                logger.error(f"Failed to persist chat message for order room {session.order_id}: {e}", exc_info=True)
                span.record_exception(e)
                await self.send_error(connection, "Failed to save message", "persist")
                return None

            chat_messages_persisted_counter.add(1, {"message_type": message.message_type})
            delivered = await self.registry.broadcast(session.order_id, message_frame(message))
            span.set_attribute("chat.delivered", delivered)
        return message
