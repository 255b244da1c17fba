# Order Lifecycle Engine: status axes, history, OCR and document files on review orders
import datetime
import logging
import math
from typing import Any, Dict, List, Optional, Type

from order_chat_service.app.models import (
    OrderDocument,
    OrderStatus,
    ReviewOrderDB,
    StatusHistoryEntry,
    ToggleStatus,
    TrackingStatus,
)
from order_chat_service.app.observability import order_status_transitions_counter, tracer
from order_chat_service.app.service import files
from order_chat_service.app.service.auth import Actor
from order_chat_service.app.service.events.models import OrderStatusChangedEvent, OrderStatusChangedPayload
from order_chat_service.app.service.events.publisher import OrderEventPublisher
from order_chat_service.app.service.exceptions import (
    AuthorizationError,
    InvalidOrderStateError,
    OrderDocumentNotFoundError,
    OrderNotFoundError,
    ServiceNotFoundError,
    ValidationError,
)
from order_chat_service.app.service.interfaces.catalog_client import AbstractCatalogClient
from order_chat_service.app.service.interfaces.object_storage import AbstractObjectStorage
from order_chat_service.app.service.interfaces.order_store import AbstractOrderStore
from order_chat_service.app.service.orders.additional_fields import validate_additional_fields
from order_chat_service.app.service.orders.models import (
    CreateOrderCommand,
    OcrUpdateItem,
    PatchStatusesCommand,
    ReviewOrderPage,
    UserOrdersOverview,
)

logger = logging.getLogger(__name__)

STATUS_AXES: Dict[str, Type] = {
    "status": OrderStatus,
    "tracking_status": TrackingStatus,
    "chat_status": ToggleStatus,
    "approve_status": ToggleStatus,
}

# action -> (statuses it may start from, axis changes it applies)
ORDER_ACTIONS: Dict[str, tuple] = {
    "start_processing": (
        (OrderStatus.PENDING.value,),
        {"status": OrderStatus.PROCESSING.value, "tracking_status": TrackingStatus.PROCESSING_STARTED.value},
    ),
    "complete_order": (
        (OrderStatus.PROCESSING.value,),
        {"status": OrderStatus.COMPLETED.value, "tracking_status": TrackingStatus.READY_FOR_REVIEW.value},
    ),
    "cancel_order": (
        (OrderStatus.PENDING.value, OrderStatus.PROCESSING.value),
        {"status": OrderStatus.REJECTED.value, "tracking_status": TrackingStatus.CANCELLED.value},
    ),
}

# Entering one of these statuses drops OCR bags and additional fields in the same update.
DATA_CLEARING_STATUSES = frozenset({OrderStatus.COMPLETED.value, OrderStatus.REJECTED.value})

MAX_PAGE_SIZE = 100


def check_ocr_keys(ocr_data: Dict[str, Any], document_ref: str):
    for key in ocr_data:
        if not key or "." in key or key.startswith("$"):
            raise ValidationError(f"Invalid OCR field name '{key}' for document '{document_ref}'.", field="ocr_data")


def page_window(page: int, limit: int) -> tuple:
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)
    return page, limit, (page - 1) * limit


class OrderLifecycleService:
    def __init__(
        self,
        order_store: AbstractOrderStore,
        catalog_client: AbstractCatalogClient,
        object_storage: AbstractObjectStorage,
        event_publisher: Optional[OrderEventPublisher] = None,
    ):
        self.order_store = order_store
        self.catalog_client = catalog_client
        self.object_storage = object_storage
        self.event_publisher = event_publisher

    # --- helpers ---

    async def _load(self, order_id: str) -> ReviewOrderDB:
        order = await self.order_store.get_review_order(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    @staticmethod
    def _require_manager(actor: Actor, operation: str):
        if not actor.can_manage_orders:
            logger.warning(f"Actor {actor.id} (role {actor.role}) denied {operation}.")
            raise AuthorizationError(f"Role '{actor.role}' is not allowed to {operation.replace('_', ' ')}.")

    @staticmethod
    def _require_owner_or_manager(order: ReviewOrderDB, actor: Actor):
        if order.user_id != actor.id and not actor.can_manage_orders:
            raise AuthorizationError("Not authorized to access this order.")

    def _publish_status_change(self, order: ReviewOrderDB, operation: str, actor: Actor):
        if self.event_publisher is None:
            return
        event = OrderStatusChangedEvent(
            aggregate_id=order.id,
            payload=OrderStatusChangedPayload(
                user_id=order.user_id,
                status=order.status,
                tracking_status=order.tracking_status,
                chat_status=order.chat_status,
                approve_status=order.approve_status,
                updated_by=actor.id,
                operation=operation,
            ),
        )
        self.event_publisher.publish(event)

    async def _apply(
        self,
        order: ReviewOrderDB,
        changes: Dict[str, str],
        actor: Actor,
        operation: str,
        expected_status: Optional[str] = None,
    ) -> ReviewOrderDB:
        """Writes one status change plus its history entry, guarded on the status read in memory."""
        entry = order.snapshot_statuses(actor.id, **changes)
        updated = await self.order_store.apply_status_update(
            order.id,
            changes,
            entry,
            expected_status=expected_status,
            exclude_status=OrderStatus.FINALIZED.value if expected_status is None else None,
            clear_order_data=changes.get("status") in DATA_CLEARING_STATUSES,
        )
        if updated is None:
            # Lost a race or the order vanished; report against what is there now.
            current = await self.order_store.get_review_order(order.id)
            if current is None:
                raise OrderNotFoundError(order.id)
            raise InvalidOrderStateError(order.id, current.status, operation.replace("_", " "))

        order_status_transitions_counter.add(1, {"operation": operation})
        logger.info(f"Order {order.id}: {operation} by {actor.id} -> {changes}")
        self._publish_status_change(updated, operation, actor)
        return updated

    # --- commands ---

    async def create_order(self, actor: Actor, command: CreateOrderCommand) -> ReviewOrderDB:
        with tracer.start_as_current_span("order.create") as span:
            span.set_attribute("order.service_id", command.service_id)
            span.set_attribute("command.id", command.command_id)

            service = await self.catalog_client.get_service(command.service_id)
            if service is None:
                raise ServiceNotFoundError(command.service_id)
            if not service.is_active:
                raise ValidationError(f"Service '{command.service_id}' is not active.", field="service_id")

            additional_fields = validate_additional_fields(service, command.additional_fields)
            documents = []
            for doc in command.documents:
                check_ocr_keys(doc.ocr_data, doc.document_name)
                documents.append(OrderDocument(document_name=doc.document_name, ocr_data=doc.ocr_data))

            order = ReviewOrderDB(
                user_id=actor.id,
                service_id=command.service_id,
                documents=documents,
                additional_fields=additional_fields,
            )
            order.status_history.append(order.snapshot_statuses(actor.id))
            await self.order_store.insert_review_order(order)
            span.set_attribute("order.id", order.id)

        order_status_transitions_counter.add(1, {"operation": "create_order"})
        logger.info(f"Created order {order.id} for user {actor.id} with {len(documents)} document(s).")
        self._publish_status_change(order, "create_order", actor)
        return order

    async def apply_action(self, order_id: str, action: str, actor: Actor) -> ReviewOrderDB:
        if action not in ORDER_ACTIONS:
            raise ValidationError(f"Invalid action '{action}'.", field="action")
        self._require_manager(actor, action)

        allowed_from, changes = ORDER_ACTIONS[action]
        with tracer.start_as_current_span(f"order.{action}") as span:
            span.set_attribute("order.id", order_id)
            order = await self._load(order_id)
            if order.status not in allowed_from:
                raise InvalidOrderStateError(order_id, order.status, action.replace("_", " "))
            return await self._apply(order, dict(changes), actor, action, expected_status=order.status)

    async def start_processing(self, order_id: str, actor: Actor) -> ReviewOrderDB:
        return await self.apply_action(order_id, "start_processing", actor)

    async def complete_order(self, order_id: str, actor: Actor) -> ReviewOrderDB:
        return await self.apply_action(order_id, "complete_order", actor)

    async def cancel_order(self, order_id: str, actor: Actor) -> ReviewOrderDB:
        return await self.apply_action(order_id, "cancel_order", actor)

    async def patch_statuses(self, order_id: str, command: PatchStatusesCommand, actor: Actor) -> ReviewOrderDB:
        self._require_manager(actor, "update order statuses")
        provided = command.provided()
        if not provided:
            raise ValidationError("At least one of status, tracking_status, chat_status or approve_status is required.")

        changes: Dict[str, str] = {}
        for field_name, raw_value in provided.items():
            value = raw_value.strip()
            allowed = [member.value for member in STATUS_AXES[field_name]]
            if value not in allowed:
                raise ValidationError(f"Invalid {field_name.replace('_', ' ')}: '{raw_value}'. Allowed values: {allowed}", field=field_name)
            changes[field_name] = value
        if changes.get("status") == OrderStatus.FINALIZED.value:
            raise ValidationError("Orders are finalized through the finalize or approve operations.", field="status")

        order = await self._load(order_id)
        if order.status == OrderStatus.FINALIZED.value:
            raise InvalidOrderStateError(order_id, order.status, "update statuses")
        return await self._apply(order, changes, actor, "patch_statuses")

    async def update_ocr_data(self, order_id: str, items: List[OcrUpdateItem], actor: Actor) -> ReviewOrderDB:
        if not items:
            raise ValidationError("At least one OCR update is required.", field="updates")

        merged: Dict[str, Dict[str, Any]] = {}
        for item in items:
            check_ocr_keys(item.ocr_data, item.document_id)
            merged.setdefault(item.document_id, {}).update(item.ocr_data)

        order = await self._load(order_id)
        self._require_owner_or_manager(order, actor)
        for document_id in merged:
            if order.find_document(document_id) is None:
                raise OrderDocumentNotFoundError(order_id, document_id)

        updated = await self.order_store.update_document_ocr(order_id, merged, datetime.datetime.now(datetime.UTC))
        if updated is None:
            current = await self._load(order_id)
            missing = next((doc_id for doc_id in merged if current.find_document(doc_id) is None), None)
            raise OrderDocumentNotFoundError(order_id, missing or next(iter(merged)))
        logger.info(f"Order {order_id}: OCR data updated for {list(merged)} by {actor.id}")
        return updated

    async def attach_document_file(
        self,
        order_id: str,
        document_id: str,
        content: bytes,
        filename: str,
        mime_type: Optional[str],
        actor: Actor,
    ) -> ReviewOrderDB:
        order = await self._load(order_id)
        self._require_owner_or_manager(order, actor)
        if order.find_document(document_id) is None:
            raise OrderDocumentNotFoundError(order_id, document_id)

        upload = files.validate_upload(
            content,
            filename,
            mime_type,
            max_size=files.MAX_ORDER_DOCUMENT_SIZE,
            allowed=files.ALLOWED_ORDER_DOCUMENT_MIME_TYPES,
        )
        stored = await self.object_storage.put(upload.content, upload.name, upload.mime_type)
        updated = await self.order_store.set_document_file(order_id, document_id, stored.url, stored.key)
        if updated is None:
            raise OrderDocumentNotFoundError(order_id, document_id)
        logger.info(f"Order {order_id}: file {stored.key} attached to document {document_id}")
        return updated

    # --- queries ---

    async def get_review_order(self, order_id: str, actor: Actor) -> ReviewOrderDB:
        order = await self._load(order_id)
        self._require_owner_or_manager(order, actor)
        return order

    async def _page(self, filters: Dict[str, Any], page: int, limit: int) -> ReviewOrderPage:
        page, limit, skip = page_window(page, limit)
        orders = await self.order_store.list_review_orders(filters, skip=skip, limit=limit)
        total = await self.order_store.count_review_orders(filters)
        return ReviewOrderPage(orders=orders, total=total, page=page, limit=limit, pages=math.ceil(total / limit))

    @staticmethod
    def _status_filter(status: Optional[str]) -> Dict[str, Any]:
        if status is None:
            return {}
        if status not in [member.value for member in OrderStatus]:
            raise ValidationError(f"Invalid status filter: '{status}'.", field="status")
        return {"status": status}

    async def list_review_orders(self, actor: Actor, status: Optional[str] = None, page: int = 1, limit: int = 10) -> ReviewOrderPage:
        filters = self._status_filter(status)
        if not actor.can_manage_orders:
            filters["user_id"] = actor.id
        return await self._page(filters, page, limit)

    async def list_my_orders(self, actor: Actor, status: Optional[str] = None, page: int = 1, limit: int = 10) -> ReviewOrderPage:
        filters = self._status_filter(status)
        filters["user_id"] = actor.id
        return await self._page(filters, page, limit)

    async def get_status_history(self, order_id: str, actor: Actor) -> List[StatusHistoryEntry]:
        order = await self.get_review_order(order_id, actor)
        return order.status_history

    async def get_user_orders(self, user_id: str, actor: Actor) -> UserOrdersOverview:
        self._require_manager(actor, "view user orders")
        review_orders = await self.order_store.list_review_orders({"user_id": user_id})
        finalized_orders = await self.order_store.list_finalized_orders({"user_id": user_id})
        return UserOrdersOverview(user_id=user_id, review_orders=review_orders, finalized_orders=finalized_orders)
