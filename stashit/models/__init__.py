from .users import User
from .products import Product
from .conversations import Conversation
from .messages import Message

__all__ = [
    "User",
    "Product",
    "Conversation",
    "Message",
]
