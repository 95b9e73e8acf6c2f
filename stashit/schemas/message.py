"""
서버 → 클라이언트 이벤트 스키마

new-message, message-notification, message-read, user-typing 등
브로드캐스트 페이로드를 정의합니다.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class OutboundPayload(BaseModel):
    """camelCase로 직렬화되는 페이로드 기본 스키마"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class UserSummary(OutboundPayload):
    """메시지에 포함되는 사용자 정보"""
    id: str
    first_name: str
    last_name: str


class ProductSummary(OutboundPayload):
    """메시지에 포함되는 상품 정보"""
    id: str
    title: str


class MessageResponse(OutboundPayload):
    """new-message 페이로드 (발신자/수신자/상품 정보 포함)"""
    id: str = Field(..., description="메시지 ID")
    sender_id: str = Field(..., description="발신자 ID")
    receiver_id: str = Field(..., description="수신자 ID")
    product_id: str = Field(..., description="상품 ID (대화방의 상품)")
    content: str = Field(..., description="메시지 내용")
    is_read: bool = Field(..., description="읽음 여부")
    created_at: datetime = Field(..., description="생성일시")
    sender: Optional[UserSummary] = None
    receiver: Optional[UserSummary] = None
    product: Optional[ProductSummary] = None


class MessageNotification(OutboundPayload):
    """message-notification 페이로드 (수신자 개인 채널로 전송)"""
    message_id: str
    sender_id: str
    sender_name: str
    content: str
    conversation_id: str
    product_title: Optional[str] = None


class MessageReadReceipt(OutboundPayload):
    """message-read 페이로드 (발신자 개인 채널로 전송)"""
    message_id: str
    read_by: str


class TypingIndicator(OutboundPayload):
    """user-typing 페이로드"""
    user_id: str
    user_name: str
    conversation_id: str


class StoppedTypingIndicator(OutboundPayload):
    """user-stopped-typing 페이로드"""
    user_id: str
    conversation_id: str
