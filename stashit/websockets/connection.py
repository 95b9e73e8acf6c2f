import uuid
from dataclasses import dataclass
from typing import Any

from fastapi import WebSocket

from stashit.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ConnectedUser:
    """연결 수명 동안 변하지 않는 인증된 사용자 정보"""
    id: str
    first_name: str
    last_name: str = ""


class Connection:
    """
    인증된 WebSocket 연결 하나를 나타냅니다.

    이벤트는 {"event": <이름>, "data": <페이로드>} 형식의 JSON 프레임으로 전송됩니다.
    """

    def __init__(self, websocket: WebSocket, user: ConnectedUser):
        self.id = uuid.uuid4().hex
        self.websocket = websocket
        self.user = user
        self.closed = False

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def user_name(self) -> str:
        return self.user.first_name

    async def emit(self, event: str, data: Any) -> bool:
        """이벤트를 전송합니다. 전송 실패는 로그만 남기고 False를 반환합니다."""
        if self.closed:
            return False
        try:
            await self.websocket.send_json({"event": event, "data": data})
            return True
        except Exception as e:
            logger.warning(f"Failed to emit '{event}' to connection {self.id} (user {self.user_id}): {e}")
            return False

    def __repr__(self):
        return f"<Connection(id={self.id}, user_id={self.user_id})>"
