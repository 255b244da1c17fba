"""
Order Finalization Flow.

Moves a review order to a finalized record exactly once. Two paths exist:

* approve (order managers): insert the finalized record and delete the review
  order in one transaction.
* finalize (the owning user, never an admin): insert the finalized record and
  mark the review order `finalized` with a history entry in one transaction,
  keeping the review row for audit.

A second finalization of the same review order is refused. The unique index on
`finalized_orders.review_order_id` and the conditional review update make the
losing side of a race abort its transaction.
"""
import logging
import math
from typing import Optional

from order_chat_service.app.models import (
    FinalizedDocument,
    FinalizedOrderDB,
    FinalizedTrackingStatus,
    OrderStatus,
    ReviewOrderDB,
    TrackingStatus,
)
from order_chat_service.app.observability import order_finalizations_counter, tracer
from order_chat_service.app.service.auth import Actor
from order_chat_service.app.service.events.models import OrderFinalizedEvent, OrderFinalizedPayload
from order_chat_service.app.service.events.publisher import OrderEventPublisher
from order_chat_service.app.service.exceptions import (
    AuthorizationError,
    BaseOrderServiceError,
    FinalizationError,
    FinalizedOrderNotFoundError,
    InvalidOrderStateError,
    OrderAlreadyFinalizedError,
    OrderNotFoundError,
    ValidationError,
)
from order_chat_service.app.service.interfaces.order_store import AbstractOrderStore
from order_chat_service.app.service.orders.lifecycle import page_window
from order_chat_service.app.service.orders.models import ApproveOrderCommand, FinalizationResult, FinalizedOrderPage

logger = logging.getLogger(__name__)

MAX_ORDER_IDENTIFIER_LENGTH = 128


def validate_order_identifier(value: str) -> str:
    identifier = value.strip()
    if not identifier:
        raise ValidationError("Order identifier is required.", field="order_identifier")
    if len(identifier) > MAX_ORDER_IDENTIFIER_LENGTH:
        raise ValidationError(f"Order identifier cannot exceed {MAX_ORDER_IDENTIFIER_LENGTH} characters.", field="order_identifier")
    if any(ord(ch) < 32 or ord(ch) == 127 for ch in identifier):
        raise ValidationError("Order identifier contains control characters.", field="order_identifier")
    return identifier


def build_finalized_order(order: ReviewOrderDB, actor: Actor, order_identifier: str = "", selector_field: str = "") -> FinalizedOrderDB:
    # OCR bags stay behind; the finalized copy only references the stored files.
    documents = [
        FinalizedDocument(document_name=doc.document_name, file_url=doc.file_url, file_key=doc.file_key)
        for doc in order.documents
    ]
    return FinalizedOrderDB(
        review_order_id=order.id,
        user_id=order.user_id,
        service_id=order.service_id,
        documents=documents,
        order_identifier=order_identifier,
        selector_field=selector_field,
        tracking_status=FinalizedTrackingStatus.APPROVED,
        approved_by=actor.id,
    )


class OrderFinalizationService:
    def __init__(self, order_store: AbstractOrderStore, event_publisher: Optional[OrderEventPublisher] = None):
        self.order_store = order_store
        self.event_publisher = event_publisher

    async def _load(self, order_id: str) -> ReviewOrderDB:
        order = await self.order_store.get_review_order(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    @staticmethod
    def _check_finalizable(order: ReviewOrderDB, action: str):
        if order.status == OrderStatus.FINALIZED.value:
            raise OrderAlreadyFinalizedError(order.id)
        if order.status == OrderStatus.REJECTED.value:
            raise InvalidOrderStateError(order.id, order.status, action)

    def _publish(self, finalized: FinalizedOrderDB, path: str, actor: Actor):
        order_finalizations_counter.add(1, {"path": path})
        if self.event_publisher is None:
            return
        self.event_publisher.publish(OrderFinalizedEvent(
            aggregate_id=finalized.review_order_id,
            payload=OrderFinalizedPayload(
                finalized_order_id=finalized.id,
                user_id=finalized.user_id,
                service_id=finalized.service_id,
                path=path,
                actor_id=actor.id,
                order_identifier=finalized.order_identifier or None,
            ),
        ))

    async def approve_order(self, order_id: str, command: ApproveOrderCommand, actor: Actor) -> FinalizedOrderDB:
        if not actor.can_manage_orders:
            raise AuthorizationError(f"Role '{actor.role}' is not allowed to approve orders.")
        identifier = validate_order_identifier(command.order_identifier)

        with tracer.start_as_current_span("order.approve") as span:
            span.set_attribute("order.id", order_id)
            order = await self._load(order_id)
            self._check_finalizable(order, "approve")
            finalized = build_finalized_order(order, actor, identifier, command.selector_field.strip())

            try:
                async with self.order_store.transaction() as session:
                    await self.order_store.insert_finalized_order(finalized, session=session)
                    if not await self.order_store.delete_review_order(order_id, session=session):
                        # Raising inside the block aborts the insert as well.
                        raise OrderNotFoundError(order_id)
            except BaseOrderServiceError:
                raise
            except Exception as e:
                logger.error(f"Approve transaction for order {order_id} failed and was rolled back: {e}", exc_info=True)
                span.record_exception(e)
                raise FinalizationError(order_id) from e

        logger.info(f"Order {order_id} approved by {actor.id} as finalized order {finalized.id}; review order deleted.")
        self._publish(finalized, "approve", actor)
        return finalized

    async def finalize_order(self, order_id: str, actor: Actor) -> FinalizationResult:
        if actor.is_admin:
            raise AuthorizationError("Admins are not allowed to finalize orders.")

        with tracer.start_as_current_span("order.finalize") as span:
            span.set_attribute("order.id", order_id)
            order = await self._load(order_id)
            if order.user_id != actor.id:
                raise AuthorizationError("Not authorized to finalize this order.")
            self._check_finalizable(order, "finalize")

            finalized = build_finalized_order(order, actor)
            changes = {"status": OrderStatus.FINALIZED.value, "tracking_status": TrackingStatus.ORDER_FINALIZED.value}
            entry = order.snapshot_statuses(actor.id, **changes)

            try:
                async with self.order_store.transaction() as session:
                    await self.order_store.insert_finalized_order(finalized, session=session)
                    review_order = await self.order_store.apply_status_update(
                        order_id,
                        changes,
                        entry,
                        exclude_status=OrderStatus.FINALIZED.value,
                        session=session,
                    )
                    if review_order is None:
                        raise OrderAlreadyFinalizedError(order_id)
            except BaseOrderServiceError:
                raise
            except Exception as e:
                logger.error(f"Finalize transaction for order {order_id} failed and was rolled back: {e}", exc_info=True)
                span.record_exception(e)
                raise FinalizationError(order_id) from e

        logger.info(f"Order {order_id} finalized by owner {actor.id} as finalized order {finalized.id}.")
        self._publish(finalized, "finalize", actor)
        return FinalizationResult(finalized_order=finalized, review_order=review_order)

    async def list_finalized_orders(self, actor: Actor, page: int = 1, limit: int = 10) -> FinalizedOrderPage:
        filters = {} if actor.can_manage_orders else {"user_id": actor.id}
        page, limit, skip = page_window(page, limit)
        orders = await self.order_store.list_finalized_orders(filters, skip=skip, limit=limit)
        total = await self.order_store.count_finalized_orders(filters)
        return FinalizedOrderPage(orders=orders, total=total, page=page, limit=limit, pages=math.ceil(total / limit))

    async def get_finalized_order(self, finalized_id: str, actor: Actor) -> FinalizedOrderDB:
        finalized = await self.order_store.get_finalized_order(finalized_id)
        if finalized is None:
            raise FinalizedOrderNotFoundError(finalized_id)
        if finalized.user_id != actor.id and not actor.can_manage_orders:
            raise AuthorizationError("Not authorized to access this order.")
        return finalized
