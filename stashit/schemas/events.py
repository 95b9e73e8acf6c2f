"""
WebSocket 이벤트 스키마

클라이언트 → 서버 이벤트의 페이로드를 검증합니다.
필드 이름은 프론트엔드와의 호환을 위해 camelCase 별칭을 사용합니다.
"""

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EventPayload(BaseModel):
    """이벤트 페이로드 기본 스키마"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ConversationRef(EventPayload):
    """join-conversation / leave-conversation 페이로드"""
    conversation_id: str = Field(..., min_length=1, description="대화방 ID")

    @classmethod
    def from_data(cls, data: Any) -> "ConversationRef":
        """웹 클라이언트는 대화방 ID 문자열만 전송하므로 두 형태를 모두 허용합니다."""
        if isinstance(data, str):
            return cls(conversation_id=data)
        return cls.model_validate(data)


class TypingEvent(EventPayload):
    """typing / stop-typing 페이로드"""
    conversation_id: str = Field(..., min_length=1, description="대화방 ID")


class SendMessageEvent(EventPayload):
    """send-message 페이로드"""
    conversation_id: str = Field(..., min_length=1, description="대화방 ID")
    content: str = Field(default="", description="메시지 내용 (공백 검증은 전송 파이프라인에서 수행)")
    product_id: Optional[str] = Field(None, description="클라이언트가 보낸 상품 ID (참고용, 저장에 사용하지 않음)")


class MarkReadEvent(EventPayload):
    """mark-read 페이로드"""
    message_id: str = Field(..., min_length=1, description="읽음 처리할 메시지 ID")


class ClientFrame(BaseModel):
    """클라이언트가 보내는 프레임: {"event": ..., "data": ...}"""
    event: str = Field(..., min_length=1)
    data: Any = None
