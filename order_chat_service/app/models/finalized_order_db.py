import datetime
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FinalizedTrackingStatus(str, Enum):
    APPROVED = "Approved"
    COMPLETED = "Completed"


class FinalizedDocument(BaseModel):
    document_name: str
    file_url: Optional[str] = None
    file_key: Optional[str] = None
    ocr_data: Dict[str, Any] = Field(default_factory=dict) # always emptied on finalization


class FinalizedOrderDB(BaseModel): # Terminal record, written once per review order
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4().hex))
    review_order_id: str # unique: one finalized record per review order
    user_id: str
    service_id: str
    documents: List[FinalizedDocument] = Field(default_factory=list)
    order_identifier: str = ""
    selector_field: str = ""
    tracking_status: FinalizedTrackingStatus = FinalizedTrackingStatus.APPROVED
    approved_by: Optional[str] = None
    approved_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
    created_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
    updated_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
