from abc import ABC, abstractmethod
import datetime
from typing import Any, AsyncContextManager, Dict, List, Optional

from order_chat_service.app.models import FinalizedOrderDB, ReviewOrderDB, StatusHistoryEntry


class AbstractOrderStore(ABC):
    """
    Persistence port for review and finalized orders.

    Every method that accepts `session` runs inside the transaction opened by
    `transaction()` when one is given.
    """

    @abstractmethod
    def transaction(self) -> AsyncContextManager[Any]:
        """
        Opens a multi-document transaction. Yields a session handle; commits on
        normal exit, aborts on any exception and always releases the session.
        """

    @abstractmethod
    async def insert_review_order(self, order: ReviewOrderDB) -> ReviewOrderDB:
        pass

    @abstractmethod
    async def get_review_order(self, order_id: str) -> Optional[ReviewOrderDB]:
        pass

    @abstractmethod
    async def list_review_orders(self, filters: Dict[str, Any], skip: int = 0, limit: Optional[int] = None) -> List[ReviewOrderDB]:
        """Newest first."""

    @abstractmethod
    async def count_review_orders(self, filters: Dict[str, Any]) -> int:
        pass

    @abstractmethod
    async def apply_status_update(
        self,
        order_id: str,
        changes: Dict[str, str],
        history_entry: StatusHistoryEntry,
        expected_status: Optional[str] = None,
        exclude_status: Optional[str] = None,
        clear_order_data: bool = False,
        session: Any = None,
    ) -> Optional[ReviewOrderDB]:
        """
        Atomically sets `changes` and appends `history_entry` on one review order.

        The update only matches when the order's current status equals
        `expected_status` (or differs from `exclude_status`). Returns the updated
        order, or None when nothing matched.
        """

    @abstractmethod
    async def update_document_ocr(
        self,
        order_id: str,
        updates: Dict[str, Dict[str, Any]],
        updated_at: datetime.datetime,
    ) -> Optional[ReviewOrderDB]:
        """
        Merges OCR fields into several embedded documents in one atomic update.

        Returns None, without writing, unless the order exists and contains every
        document id in `updates`.
        """

    @abstractmethod
    async def set_document_file(self, order_id: str, document_id: str, file_url: str, file_key: str) -> Optional[ReviewOrderDB]:
        pass

    @abstractmethod
    async def delete_review_order(self, order_id: str, session: Any = None) -> bool:
        pass

    @abstractmethod
    async def insert_finalized_order(self, order: FinalizedOrderDB, session: Any = None) -> FinalizedOrderDB:
        """Raises OrderAlreadyFinalizedError when the review order already has a finalized record."""

    @abstractmethod
    async def get_finalized_order(self, finalized_id: str) -> Optional[FinalizedOrderDB]:
        pass

    @abstractmethod
    async def get_finalized_by_review_order(self, review_order_id: str) -> Optional[FinalizedOrderDB]:
        pass

    @abstractmethod
    async def list_finalized_orders(self, filters: Dict[str, Any], skip: int = 0, limit: Optional[int] = None) -> List[FinalizedOrderDB]:
        """Newest first."""

    @abstractmethod
    async def count_finalized_orders(self, filters: Dict[str, Any]) -> int:
        pass
