# Client -> Server event schemas
from .events import (
    ClientFrame,
    ConversationRef,
    TypingEvent,
    SendMessageEvent,
    MarkReadEvent
)

# Server -> Client event schemas
from .message import (
    UserSummary,
    ProductSummary,
    MessageResponse,
    MessageNotification,
    MessageReadReceipt,
    TypingIndicator,
    StoppedTypingIndicator
)

__all__ = [
    # Inbound
    "ClientFrame",
    "ConversationRef",
    "TypingEvent",
    "SendMessageEvent",
    "MarkReadEvent",

    # Outbound
    "UserSummary",
    "ProductSummary",
    "MessageResponse",
    "MessageNotification",
    "MessageReadReceipt",
    "TypingIndicator",
    "StoppedTypingIndicator",
]
