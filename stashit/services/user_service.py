"""
User Service - 사용자 조회
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from stashit.models.users import User


async def find_user_by_id(db: AsyncSession, user_id: str) -> Optional[User]:
    """사용자 ID로 조회"""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()
