"""
Conversation Service - 대화방 관련 데이터 접근
"""

from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from stashit.core.errors import InvalidPayloadException
from stashit.models.conversations import Conversation


async def find_conversation_for_user(
    db: AsyncSession,
    conversation_id: str,
    user_id: str
) -> Optional[Conversation]:
    """사용자가 참여 중인 대화방 조회 (참여자가 아니면 None)"""
    result = await db.execute(
        select(Conversation)
        .where(
            Conversation.id == conversation_id,
            or_(Conversation.user1_id == user_id, Conversation.user2_id == user_id)
        )
        .options(
            selectinload(Conversation.user1),
            selectinload(Conversation.user2),
            selectinload(Conversation.product)
        )
    )
    return result.scalar_one_or_none()


async def find_conversation_between(
    db: AsyncSession,
    user_id: str,
    other_user_id: str,
    product_id: str
) -> Optional[Conversation]:
    """두 사용자 간 상품 대화방 조회 (참여자 순서 무관)"""
    result = await db.execute(
        select(Conversation)
        .where(
            Conversation.product_id == product_id,
            or_(
                and_(Conversation.user1_id == user_id, Conversation.user2_id == other_user_id),
                and_(Conversation.user1_id == other_user_id, Conversation.user2_id == user_id)
            )
        )
        .options(
            selectinload(Conversation.user1),
            selectinload(Conversation.user2),
            selectinload(Conversation.product)
        )
    )
    return result.scalar_one_or_none()


async def find_or_create_conversation(
    db: AsyncSession,
    user_id: str,
    other_user_id: str,
    product_id: str
) -> Conversation:
    """
    두 사용자 간 상품 대화방을 조회하고, 없으면 생성합니다.

    참여자는 (작은 ID, 큰 ID) 순서로 저장됩니다. 동시 생성으로 유니크 제약에
    걸리면 이미 저장된 대화방을 다시 조회합니다.
    """
    if user_id == other_user_id:
        raise InvalidPayloadException("Cannot start a conversation with yourself")

    existing = await find_conversation_between(db, user_id, other_user_id, product_id)
    if existing:
        return existing

    user1_id, user2_id = Conversation.ordered_pair(user_id, other_user_id)
    db.add(Conversation(user1_id=user1_id, user2_id=user2_id, product_id=product_id))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        existing = await find_conversation_between(db, user_id, other_user_id, product_id)
        if existing is None:
            raise
        return existing

    return await find_conversation_between(db, user_id, other_user_id, product_id)


async def touch_conversation(
    db: AsyncSession,
    conversation_id: str,
    at: Optional[datetime] = None
) -> int:
    """대화방의 마지막 메시지 시각 갱신"""
    result = await db.execute(
        update(Conversation)
        .where(Conversation.id == conversation_id)
        .values(last_message_at=at or datetime.utcnow())
    )
    await db.commit()
    return result.rowcount
