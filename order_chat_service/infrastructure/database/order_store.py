# Operations for the review_orders and finalized_orders collections
import contextlib
import datetime
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from order_chat_service.app.models import FinalizedOrderDB, ReviewOrderDB, StatusHistoryEntry
from order_chat_service.app.service.exceptions import OrderAlreadyFinalizedError
from order_chat_service.app.service.interfaces.order_store import AbstractOrderStore
from .connection import FINALIZED_ORDERS_COLLECTION, REVIEW_ORDERS_COLLECTION

logger = logging.getLogger(__name__)


class MongoOrderStore(AbstractOrderStore):
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    @property
    def review_orders(self):
        return self.db[REVIEW_ORDERS_COLLECTION]

    @property
    def finalized_orders(self):
        return self.db[FINALIZED_ORDERS_COLLECTION]

    @contextlib.asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncIOMotorClientSession]:
        # Commits on clean exit, aborts when the body raises; the session is ended either way.
        async with await self.db.client.start_session() as session:
            async with session.start_transaction():
                yield session

    async def insert_review_order(self, order: ReviewOrderDB) -> ReviewOrderDB:
        await self.review_orders.insert_one(order.model_dump())
        logger.info(f"Inserted review order ID: {order.id} for user {order.user_id} (service {order.service_id})")
        return order

    async def get_review_order(self, order_id: str) -> Optional[ReviewOrderDB]:
        doc = await self.review_orders.find_one({"id": order_id})
        return ReviewOrderDB(**doc) if doc else None

    async def list_review_orders(self, filters: Dict[str, Any], skip: int = 0, limit: Optional[int] = None) -> List[ReviewOrderDB]:
        cursor = self.review_orders.find(filters).sort("created_at", DESCENDING).skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        docs = await cursor.to_list(length=None)
        return [ReviewOrderDB(**doc) for doc in docs]

    async def count_review_orders(self, filters: Dict[str, Any]) -> int:
        return await self.review_orders.count_documents(filters)

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
        query_filter: Dict[str, Any] = {"id": order_id}
        if expected_status is not None:
            query_filter["status"] = expected_status
        elif exclude_status is not None:
            query_filter["status"] = {"$ne": exclude_status}

        set_operations: Dict[str, Any] = dict(changes)
        set_operations["updated_at"] = history_entry.updated_at
        if clear_order_data:
            set_operations["documents.$[].ocr_data"] = {}
            set_operations["additional_fields"] = []

        updated = await self.review_orders.find_one_and_update(
            query_filter,
            {"$set": set_operations, "$push": {"status_history": history_entry.model_dump()}},
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        if updated is None:
            logger.warning(f"Status update on review order ID: {order_id} matched nothing (filter: {query_filter}).")
            return None
        logger.info(f"Applied status update {changes} to review order ID: {order_id}")
        return ReviewOrderDB(**updated)

    async def update_document_ocr(
        self,
        order_id: str,
        updates: Dict[str, Dict[str, Any]],
        updated_at: datetime.datetime,
    ) -> Optional[ReviewOrderDB]:
        document_ids = list(updates.keys())
        set_operations: Dict[str, Any] = {"updated_at": updated_at}
        array_filters: List[Dict[str, Any]] = []
        for idx, (document_id, ocr_fields) in enumerate(updates.items()):
            ident = f"d{idx}"
            for key, value in ocr_fields.items():
                set_operations[f"documents.$[{ident}].ocr_data.{key}"] = value
            set_operations[f"documents.$[{ident}].ocr_updated_at"] = updated_at
            array_filters.append({f"{ident}.id": document_id})

        # The filter only matches when every addressed document exists, so a bad id writes nothing.
        updated = await self.review_orders.find_one_and_update(
            {"id": order_id, "documents.id": {"$all": document_ids}},
            {"$set": set_operations},
            array_filters=array_filters,
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            logger.warning(f"OCR update on review order ID: {order_id} matched nothing for documents {document_ids}.")
            return None
        logger.info(f"Updated OCR data for {len(document_ids)} document(s) in review order ID: {order_id}")
        return ReviewOrderDB(**updated)

    async def set_document_file(self, order_id: str, document_id: str, file_url: str, file_key: str) -> Optional[ReviewOrderDB]:
        updated = await self.review_orders.find_one_and_update(
            {"id": order_id, "documents.id": document_id},
            {"$set": {
                "documents.$.file_url": file_url,
                "documents.$.file_key": file_key,
                "documents.$.file_uploaded": True,
                "updated_at": datetime.datetime.now(datetime.UTC),
            }},
            return_document=ReturnDocument.AFTER,
        )
        return ReviewOrderDB(**updated) if updated else None

    async def delete_review_order(self, order_id: str, session: Any = None) -> bool:
        result = await self.review_orders.delete_one({"id": order_id}, session=session)
        if result.deleted_count == 0:
            logger.warning(f"Review order ID: {order_id} not found for deletion.")
            return False
        logger.info(f"Deleted review order ID: {order_id}")
        return True

    async def insert_finalized_order(self, order: FinalizedOrderDB, session: Any = None) -> FinalizedOrderDB:
        try:
            await self.finalized_orders.insert_one(order.model_dump(), session=session)
        except DuplicateKeyError as e:
            logger.warning(f"Finalized record already exists for review order ID: {order.review_order_id}: {e}")
            raise OrderAlreadyFinalizedError(order.review_order_id) from e
        logger.info(f"Inserted finalized order ID: {order.id} for review order ID: {order.review_order_id}")
        return order

    async def get_finalized_order(self, finalized_id: str) -> Optional[FinalizedOrderDB]:
        doc = await self.finalized_orders.find_one({"id": finalized_id})
        return FinalizedOrderDB(**doc) if doc else None

    async def get_finalized_by_review_order(self, review_order_id: str) -> Optional[FinalizedOrderDB]:
        doc = await self.finalized_orders.find_one({"review_order_id": review_order_id})
        return FinalizedOrderDB(**doc) if doc else None

    async def list_finalized_orders(self, filters: Dict[str, Any], skip: int = 0, limit: Optional[int] = None) -> List[FinalizedOrderDB]:
        cursor = self.finalized_orders.find(filters).sort("created_at", DESCENDING).skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        docs = await cursor.to_list(length=None)
        return [FinalizedOrderDB(**doc) for doc in docs]

    async def count_finalized_orders(self, filters: Dict[str, Any]) -> int:
        return await self.finalized_orders.count_documents(filters)
