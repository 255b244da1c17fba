from .review_order_db import (
    AdditionalField,
    AdditionalFieldType,
    OrderDocument,
    OrderStatus,
    ReviewOrderDB,
    StatusHistoryEntry,
    ToggleStatus,
    TrackingStatus,
)
from .finalized_order_db import FinalizedDocument, FinalizedOrderDB, FinalizedTrackingStatus
from .chat_message_db import (
    CHAT_MESSAGE_TTL_SECONDS,
    ActiveChatSummary,
    ChatMessageDB,
    MessageType,
    SenderType,
)

__all__ = [
    "AdditionalField",
    "AdditionalFieldType",
    "OrderDocument",
    "OrderStatus",
    "ReviewOrderDB",
    "StatusHistoryEntry",
    "ToggleStatus",
    "TrackingStatus",
    "FinalizedDocument",
    "FinalizedOrderDB",
    "FinalizedTrackingStatus",
    "CHAT_MESSAGE_TTL_SECONDS",
    "ActiveChatSummary",
    "ChatMessageDB",
    "MessageType",
    "SenderType",
]
