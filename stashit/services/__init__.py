"""
Services layer for data access and external communications.

This layer handles:
- Database queries and operations
- Presence mirroring to Redis
"""

from . import conversation_service
from . import message_service
from . import user_service

__all__ = [
    "conversation_service",
    "message_service",
    "user_service"
]
