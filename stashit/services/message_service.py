"""
Message service layer for relational message storage.

Handles message creation and read-status updates.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.orm import selectinload

from stashit.models.messages import Message


async def create_message(
    db: AsyncSession,
    sender_id: str,
    receiver_id: str,
    product_id: str,
    content: str
) -> Message:
    """메시지 생성 후 발신자/수신자/상품 정보를 함께 로드하여 반환"""
    message = Message(
        sender_id=sender_id,
        receiver_id=receiver_id,
        product_id=product_id,
        content=content,
        is_read=False,
        created_at=datetime.utcnow()
    )

    db.add(message)
    await db.commit()

    result = await db.execute(
        select(Message)
        .where(Message.id == message.id)
        .options(
            selectinload(Message.sender),
            selectinload(Message.receiver),
            selectinload(Message.product)
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def mark_message_as_read(
    db: AsyncSession,
    message_id: str,
    receiver_id: str
) -> Optional[str]:
    """
    수신자 본인의 메시지만 읽음 처리

    Returns:
        읽음 처리된 메시지의 발신자 ID, 해당하는 메시지가 없으면 None
    """
    result = await db.execute(
        update(Message)
        .where(Message.id == message_id, Message.receiver_id == receiver_id)
        .values(is_read=True)
        .returning(Message.sender_id)
    )
    sender_id = result.scalar_one_or_none()
    await db.commit()
    return sender_id
