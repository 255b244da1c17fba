# Pydantic models for order events published to Kafka
import datetime
import uuid
from typing import Optional

from pydantic import BaseModel, Field


class BaseOrderEvent(BaseModel):
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str
    aggregate_id: str # review order id
    timestamp: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
    version: int = 1


class OrderStatusChangedPayload(BaseModel):
    user_id: str
    status: str
    tracking_status: str
    chat_status: str
    approve_status: str
    updated_by: str
    operation: str # start_processing, complete_order, patch_statuses, create_order


class OrderStatusChangedEvent(BaseOrderEvent):
    event_type: str = "OrderStatusChanged"
    payload: OrderStatusChangedPayload


class OrderFinalizedPayload(BaseModel):
    finalized_order_id: str
    user_id: str
    service_id: str
    path: str # approve or finalize
    actor_id: str
    order_identifier: Optional[str] = None


class OrderFinalizedEvent(BaseOrderEvent):
    event_type: str = "OrderFinalized"
    payload: OrderFinalizedPayload
