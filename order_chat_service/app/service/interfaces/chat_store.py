from abc import ABC, abstractmethod
from typing import List, Optional

from order_chat_service.app.models import ActiveChatSummary, ChatMessageDB


class AbstractChatStore(ABC):
    @abstractmethod
    async def insert_message(self, message: ChatMessageDB) -> ChatMessageDB:
        pass

    @abstractmethod
    async def list_messages_for_order(self, order_id: str) -> List[ChatMessageDB]:
        """Oldest first."""

    @abstractmethod
    async def list_all_messages(self) -> List[ChatMessageDB]:
        """Newest first."""

    @abstractmethod
    async def list_messages_by_sender(self, sender: str) -> List[ChatMessageDB]:
        """Newest first."""

    @abstractmethod
    async def list_active_rooms(self) -> List[ActiveChatSummary]:
        """Latest message per order, rooms with the most recent activity first."""

    @abstractmethod
    async def delete_message(self, message_id: str) -> Optional[ChatMessageDB]:
        """Returns the deleted message, or None when it did not exist."""
