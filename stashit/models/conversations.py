from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from stashit.database.postgres import Base
from stashit.models._ids import generate_id


class Conversation(Base):
    """
    두 사용자 간 상품 단위 대화방

    참여자 쌍은 (작은 ID, 큰 ID) 순서로 저장되므로, 순서 있는 유니크 제약이
    (사용자 쌍, 상품) 조합의 순서 없는 유일성을 보장합니다.
    """
    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("user1_id", "user2_id", "product_id", name="conversations_user1_id_user2_id_product_id_key"),
        CheckConstraint("user1_id < user2_id", name="conversations_participants_ordered"),
    )

    id = Column(String(32), primary_key=True, default=generate_id)
    user1_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    user2_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(32), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    last_message_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    user1 = relationship("User", foreign_keys=[user1_id])
    user2 = relationship("User", foreign_keys=[user2_id])
    product = relationship("Product")

    @staticmethod
    def ordered_pair(user_a_id: str, user_b_id: str) -> tuple:
        """저장 순서로 정렬된 참여자 쌍 (user1_id, user2_id)"""
        return (min(user_a_id, user_b_id), max(user_a_id, user_b_id))

    def has_participant(self, user_id: str) -> bool:
        """사용자가 대화 참여자인지 확인"""
        return user_id in (self.user1_id, self.user2_id)

    def other_participant_id(self, user_id: str) -> str:
        """현재 사용자가 아닌 상대방의 ID를 반환"""
        return self.user2_id if self.user1_id == user_id else self.user1_id

    def __repr__(self):
        return f"<Conversation(id={self.id}, user1_id={self.user1_id}, user2_id={self.user2_id}, product_id={self.product_id})>"
