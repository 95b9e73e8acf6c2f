from typing import Any, Dict, Set, Tuple

from stashit.core.logging import get_logger
from stashit.websockets.connection import Connection

logger = get_logger(__name__)


class ConnectionRegistry:
    """
    사용자별 활성 WebSocket 연결 관리

    한 사용자가 여러 기기로 동시에 접속할 수 있으므로 사용자마다 연결 집합을 유지합니다.
    연결이 하나라도 남아 있으면 온라인으로 간주합니다.
    프로세스 메모리에만 존재하므로 재시작 시 초기화됩니다.
    """

    def __init__(self):
        # 사용자별 연결: {user_id: {connection, ...}}
        self._connections: Dict[str, Set[Connection]] = {}

    def on_connect(self, user_id: str, connection: Connection) -> bool:
        """
        연결을 등록합니다.

        Returns:
            bool: 이 연결로 사용자가 오프라인에서 온라인이 되었으면 True
        """
        connections = self._connections.setdefault(user_id, set())
        became_online = not connections
        connections.add(connection)

        logger.debug(f"Registered connection {connection.id} for user {user_id} ({len(connections)} active)")
        return became_online

    def on_disconnect(self, user_id: str, connection: Connection) -> bool:
        """
        연결을 제거합니다. 등록되지 않은(이미 대체된) 연결의 해제는 무시합니다.

        Returns:
            bool: 이 해제로 사용자가 오프라인이 되었으면 True
        """
        connections = self._connections.get(user_id)
        if not connections or connection not in connections:
            return False

        connections.discard(connection)
        if connections:
            return False

        del self._connections[user_id]
        return True

    def is_online(self, user_id: str) -> bool:
        """사용자가 연결되어 있는지 확인합니다."""
        return user_id in self._connections

    def list_online(self) -> Set[str]:
        """현재 온라인인 모든 사용자 ID의 스냅샷을 반환합니다."""
        return set(self._connections)

    def online_count(self) -> int:
        return len(self._connections)

    def connections_for(self, user_id: str) -> Tuple[Connection, ...]:
        """사용자의 개인 채널(등록된 모든 연결) 스냅샷"""
        return tuple(self._connections.get(user_id, ()))

    async def send_to_user(self, user_id: str, event: str, data: Any) -> int:
        """사용자의 모든 연결에 이벤트를 전송하고, 전송에 성공한 연결 수를 반환합니다."""
        delivered = 0
        for connection in self.connections_for(user_id):
            if await connection.emit(event, data):
                delivered += 1
        return delivered
