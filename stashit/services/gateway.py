"""
Persistence Gateway

실시간 메시징 코어가 사용하는 영속성 계층입니다. 연산마다 독립된 세션을 열고,
SQLAlchemy 오류는 PersistenceException으로 변환합니다.
"""

import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stashit.core.errors import PersistenceException
from stashit.core.logging import get_logger, log_database_operation
from stashit.models.conversations import Conversation
from stashit.models.messages import Message
from stashit.models.users import User
from stashit.services import conversation_service, message_service, user_service

logger = get_logger(__name__)


class ChatGateway:
    """대화방/메시지/사용자 저장소 접근"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def find_conversation(self, conversation_id: str, requesting_user_id: str) -> Optional[Conversation]:
        """참여자 조건을 포함한 대화방 조회"""
        async with self._session("select", "conversations") as db:
            return await conversation_service.find_conversation_for_user(db, conversation_id, requesting_user_id)

    async def find_or_create_conversation(self, user_id: str, other_user_id: str, product_id: str) -> Conversation:
        """두 사용자 간 상품 대화방 조회 또는 생성 (참여자 순서 무관)"""
        async with self._session("upsert", "conversations") as db:
            return await conversation_service.find_or_create_conversation(db, user_id, other_user_id, product_id)

    async def create_message(self, sender_id: str, receiver_id: str, product_id: str, content: str) -> Message:
        async with self._session("insert", "messages") as db:
            return await message_service.create_message(db, sender_id, receiver_id, product_id, content)

    async def mark_message_read(self, message_id: str, receiver_id: str) -> Optional[str]:
        """수신자 조건부 읽음 처리. 반영된 경우 발신자 ID를 반환"""
        async with self._session("update", "messages") as db:
            return await message_service.mark_message_as_read(db, message_id, receiver_id)

    async def touch_conversation(self, conversation_id: str, at: Optional[datetime] = None) -> None:
        async with self._session("update", "conversations") as db:
            await conversation_service.touch_conversation(db, conversation_id, at)

    async def get_user(self, user_id: str) -> Optional[User]:
        async with self._session("select", "users") as db:
            return await user_service.find_user_by_id(db, user_id)

    @asynccontextmanager
    async def _session(self, operation: str, table: str) -> AsyncIterator[AsyncSession]:
        started_at = time.monotonic()
        async with self.session_factory() as db:
            try:
                yield db
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"DB {operation} on {table} failed: {e}")
                raise PersistenceException(f"{operation}:{table}") from e

        duration_ms = (time.monotonic() - started_at) * 1000
        log_database_operation(logger, operation, table, duration_ms=round(duration_ms, 2))
