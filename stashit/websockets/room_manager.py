from typing import Any, Dict, FrozenSet, Optional, Set, Tuple

from stashit.core.errors import PersistenceException, conversation_access_error
from stashit.core.logging import get_logger, log_websocket_event
from stashit.models.conversations import Conversation
from stashit.services.gateway import ChatGateway
from stashit.websockets.connection import Connection

logger = get_logger(__name__)


class RoomManager:
    """대화방 단위 브로드캐스트 그룹 관리"""

    def __init__(self, gateway: ChatGateway):
        self.gateway = gateway
        # 대화방별 연결 그룹: {conversation_id: {connection, ...}}
        self._rooms: Dict[str, Set[Connection]] = {}
        # 연결별 참여 대화방: {connection: {conversation_id, ...}}
        self._memberships: Dict[Connection, Set[str]] = {}

    async def join(self, connection: Connection, conversation_id: str) -> Conversation:
        """
        대화 참여자 확인 후 연결을 대화방 그룹에 추가합니다.

        Raises:
            AuthorizationException: 참여자가 아니거나 대화방이 없는 경우
            PersistenceException: 참여자 확인 조회에 실패한 경우
        """
        try:
            conversation = await self.gateway.find_conversation(conversation_id, connection.user_id)
        except PersistenceException as e:
            raise PersistenceException(e.operation, message="Failed to join conversation") from e

        if conversation is None:
            logger.warning(f"User {connection.user_id} denied access to conversation {conversation_id}")
            raise conversation_access_error()

        # 조회를 기다리는 동안 연결이 끊겼다면 그룹에 추가하지 않음
        if connection.closed:
            return conversation

        self._rooms.setdefault(conversation_id, set()).add(connection)
        self._memberships.setdefault(connection, set()).add(conversation_id)

        log_websocket_event(logger, "join", connection.user_id, conversation_id)
        await connection.emit("joined-conversation", conversation_id)
        return conversation

    async def leave(self, connection: Connection, conversation_id: str) -> None:
        """대화방 그룹에서 연결을 제거합니다. 참여하지 않은 대화방이어도 오류가 아닙니다."""
        self._remove(connection, conversation_id)
        await connection.emit("left-conversation", conversation_id)

    def leave_all(self, connection: Connection) -> None:
        """연결이 참여한 모든 대화방 그룹에서 제거합니다. (연결 해제 시)"""
        for conversation_id in tuple(self._memberships.get(connection, ())):
            self._remove(connection, conversation_id)
        self._memberships.pop(connection, None)

    def members(self, conversation_id: str) -> Tuple[Connection, ...]:
        """대화방 그룹의 현재 멤버 스냅샷"""
        return tuple(self._rooms.get(conversation_id, ()))

    def rooms_of(self, connection: Connection) -> FrozenSet[str]:
        return frozenset(self._memberships.get(connection, ()))

    def is_member(self, connection: Connection, conversation_id: str) -> bool:
        return connection in self._rooms.get(conversation_id, ())

    async def broadcast(
        self,
        conversation_id: str,
        event: str,
        data: Any,
        exclude: Optional[Connection] = None
    ) -> int:
        """
        대화방 그룹에 이벤트를 전송합니다.

        전송 시점의 멤버 스냅샷을 대상으로 하며, 일부 연결의 전송 실패는
        나머지 전송을 중단시키지 않습니다.

        Returns:
            int: 전송에 성공한 연결 수
        """
        delivered = 0
        for member in self.members(conversation_id):
            if member is exclude:
                continue
            if await member.emit(event, data):
                delivered += 1
        return delivered

    def _remove(self, connection: Connection, conversation_id: str) -> None:
        room = self._rooms.get(conversation_id)
        if room is not None:
            room.discard(connection)
            # 대화방에 연결이 없으면 그룹 자체를 제거
            if not room:
                del self._rooms[conversation_id]

        memberships = self._memberships.get(connection)
        if memberships is not None:
            memberships.discard(conversation_id)
            if not memberships:
                del self._memberships[connection]
