# Operations for the chat_messages collection
import logging
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from order_chat_service.app.models import ActiveChatSummary, ChatMessageDB
from order_chat_service.app.service.interfaces.chat_store import AbstractChatStore
from .connection import CHAT_MESSAGES_COLLECTION

logger = logging.getLogger(__name__)


class MongoChatStore(AbstractChatStore):
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    @property
    def messages(self):
        return self.db[CHAT_MESSAGES_COLLECTION]

    async def insert_message(self, message: ChatMessageDB) -> ChatMessageDB:
        await self.messages.insert_one(message.model_dump())
        logger.info(f"Stored chat message ID: {message.id} in order room {message.order_id} (type: {message.message_type})")
        return message

    async def list_messages_for_order(self, order_id: str) -> List[ChatMessageDB]:
        docs = await self.messages.find({"order_id": order_id}).sort("created_at", ASCENDING).to_list(length=None)
        return [ChatMessageDB(**doc) for doc in docs]

    async def list_all_messages(self) -> List[ChatMessageDB]:
        docs = await self.messages.find({}).sort("created_at", DESCENDING).to_list(length=None)
        return [ChatMessageDB(**doc) for doc in docs]

    async def list_messages_by_sender(self, sender: str) -> List[ChatMessageDB]:
        docs = await self.messages.find({"sender": sender}).sort("created_at", DESCENDING).to_list(length=None)
        return [ChatMessageDB(**doc) for doc in docs]

    async def list_active_rooms(self) -> List[ActiveChatSummary]:
        pipeline = [
            {"$sort": {"created_at": DESCENDING}},
            {"$group": {"_id": "$order_id", "last_message": {"$first": "$$ROOT"}}},
            {"$sort": {"last_message.created_at": DESCENDING}},
        ]
        rows = await self.messages.aggregate(pipeline).to_list(length=None)
        return [ActiveChatSummary(order_id=row["_id"], last_message=ChatMessageDB(**row["last_message"])) for row in rows]

    async def delete_message(self, message_id: str) -> Optional[ChatMessageDB]:
        doc = await self.messages.find_one_and_delete({"id": message_id})
        if doc is None:
            logger.warning(f"Chat message ID: {message_id} not found for deletion.")
            return None
        logger.info(f"Deleted chat message ID: {message_id} from order room {doc.get('order_id')}")
        return ChatMessageDB(**doc)
