import datetime
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    REJECTED = "rejected"
    FINALIZED = "finalized"


class TrackingStatus(str, Enum):
    ORDER_PLACED = "Order Placed"
    PAYMENT_PENDING = "Payment Pending"
    PAYMENT_COMPLETED = "Payment Completed"
    DOCUMENTS_UNDER_REVIEW = "Documents Under Review"
    DOCUMENTS_REJECTED = "Documents Rejected"
    REVIEW_COMPLETED = "Review Completed"
    PROCESSING_STARTED = "Processing Started"
    READY_FOR_REVIEW = "Ready for Review"
    PENDING_APPROVAL = "Pending Approval"
    APPROVED = "Approved"
    CANCELLED = "Cancelled"
    COMPLETED_SUCCESSFULLY = "Completed Successfully"
    ORDER_FINALIZED = "Order Finalized"


class ToggleStatus(str, Enum): # chat_status and approve_status share this domain
    ENABLED = "Enabled"
    DISABLED = "Disabled"


class AdditionalFieldType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    SELECT = "select"
    BOOLEAN = "boolean"
    FILE = "file"


class AdditionalField(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    field_name: str
    field_value: Any
    field_type: AdditionalFieldType = AdditionalFieldType.TEXT


class OrderDocument(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4().hex))
    document_name: str
    file_url: Optional[str] = None # object storage location
    file_key: Optional[str] = None
    p2p_hash: Optional[str] = None # alternate peer-transfer storage path
    p2p_url: Optional[str] = None
    ocr_data: Dict[str, Any] = Field(default_factory=dict)
    file_uploaded: bool = False
    ocr_updated_at: Optional[datetime.datetime] = None


class StatusHistoryEntry(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True, frozen=True)

    status: OrderStatus
    tracking_status: TrackingStatus
    chat_status: ToggleStatus
    approve_status: ToggleStatus
    updated_by: str
    updated_at: datetime.datetime = Field(default_factory=_utcnow)


class ReviewOrderDB(BaseModel): # An order still in review; source of truth for the four status axes
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4().hex))
    user_id: str
    service_id: str
    documents: List[OrderDocument] = Field(default_factory=list)
    additional_fields: List[AdditionalField] = Field(default_factory=list)
    order_identifier: str = ""
    selector_field: str = ""

    status: OrderStatus = OrderStatus.PENDING
    tracking_status: TrackingStatus = TrackingStatus.ORDER_PLACED
    chat_status: ToggleStatus = ToggleStatus.ENABLED
    approve_status: ToggleStatus = ToggleStatus.DISABLED
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)

    created_at: datetime.datetime = Field(default_factory=_utcnow)
    updated_at: datetime.datetime = Field(default_factory=_utcnow)

    def find_document(self, document_id: str) -> Optional[OrderDocument]:
        return next((doc for doc in self.documents if doc.id == document_id), None)

    def snapshot_statuses(self, updated_by: str, **changes: str) -> StatusHistoryEntry:
        """Builds a history entry from the current axes with `changes` applied on top."""
        return StatusHistoryEntry(
            status=changes.get("status", self.status),
            tracking_status=changes.get("tracking_status", self.tracking_status),
            chat_status=changes.get("chat_status", self.chat_status),
            approve_status=changes.get("approve_status", self.approve_status),
            updated_by=updated_by,
        )
