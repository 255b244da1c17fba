# Wire frames for the order chat WebSocket channel
import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from order_chat_service.app.models import ChatMessageDB, SenderType

MAX_TEXT_MESSAGE_LENGTH = 5000


class ChatSession(BaseModel):
    """Identity bound to one live connection; never persisted."""
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    order_id: str
    user_id: str
    user_type: SenderType
    role: str
    connected_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))


class InboundFile(BaseModel):
    data: Optional[str] = None # base64 or data URL
    name: str = "file"
    type: Optional[str] = None
    size: Optional[int] = None


class InboundChatFrame(BaseModel):
    # Sender identity is taken from the bound session; client-supplied identity fields are ignored.
    model_config = ConfigDict(extra="ignore")

    message: Optional[str] = None
    file: Optional[InboundFile] = None


def connection_frame(session: ChatSession) -> Dict[str, Any]:
    return {"type": "connection", "status": "connected", "orderId": session.order_id, "userType": session.user_type}


def message_frame(message: ChatMessageDB) -> Dict[str, Any]:
    return {"type": "message", "data": message.model_dump(mode="json")}


def error_frame(detail: str) -> Dict[str, Any]:
    return {"type": "error", "message": detail}
