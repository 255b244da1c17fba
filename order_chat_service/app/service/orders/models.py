# Pydantic models for order commands
import uuid
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from order_chat_service.app.models import FinalizedOrderDB, ReviewOrderDB


class BaseCommand(BaseModel):
    command_id: str = Field(default_factory=lambda: str(uuid.uuid4()))


class AdditionalFieldInput(BaseModel):
    field_name: str
    field_value: Any = None


class DocumentInput(BaseModel):
    document_name: str
    ocr_data: Dict[str, Any] = Field(default_factory=dict)


class CreateOrderCommand(BaseCommand):
    service_id: str
    documents: List[DocumentInput] = Field(default_factory=list)
    additional_fields: List[AdditionalFieldInput] = Field(default_factory=list)


class PatchStatusesCommand(BaseCommand):
    # Raw strings; each provided value is checked against its axis enum by the service
    status: Optional[str] = None
    tracking_status: Optional[str] = None
    chat_status: Optional[str] = None
    approve_status: Optional[str] = None

    def provided(self) -> Dict[str, str]:
        return {
            name: value
            for name, value in self.model_dump(include={"status", "tracking_status", "chat_status", "approve_status"}).items()
            if value is not None
        }


class OrderActionCommand(BaseCommand):
    action: str # start_processing or complete_order


class OcrUpdateItem(BaseModel):
    document_id: str
    ocr_data: Dict[str, Any]


class UpdateOcrDataCommand(BaseCommand):
    updates: List[OcrUpdateItem] = Field(min_length=1)


class ApproveOrderCommand(BaseCommand):
    order_identifier: str
    selector_field: str = ""


class ReviewOrderPage(BaseModel):
    orders: List[ReviewOrderDB]
    total: int
    page: int
    limit: int
    pages: int


class FinalizedOrderPage(BaseModel):
    orders: List[FinalizedOrderDB]
    total: int
    page: int
    limit: int
    pages: int


class UserOrdersOverview(BaseModel):
    user_id: str
    review_orders: List[ReviewOrderDB]
    finalized_orders: List[FinalizedOrderDB]


class FinalizationResult(BaseModel):
    finalized_order: FinalizedOrderDB
    review_order: ReviewOrderDB
