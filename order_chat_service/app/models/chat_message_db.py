import datetime
import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Messages are purged by a TTL index on created_at; not configurable.
CHAT_MESSAGE_TTL_SECONDS = 30 * 24 * 60 * 60


class SenderType(str, Enum):
    USER = "user"
    ADMIN = "admin"


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    PDF = "pdf"
    DOCUMENT = "document"
    SPREADSHEET = "spreadsheet"


class ChatMessageDB(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4().hex))
    order_id: str
    sender: str
    sender_type: SenderType
    message_type: MessageType = MessageType.TEXT
    content: str # text body, or the original filename for file messages
    file_url: Optional[str] = None
    file_key: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    created_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))


class ActiveChatSummary(BaseModel): # One row per order room with recent activity
    order_id: str
    last_message: ChatMessageDB
