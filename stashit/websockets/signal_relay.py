from stashit.core.errors import PersistenceException
from stashit.core.logging import get_logger, log_websocket_event
from stashit.schemas.message import MessageReadReceipt, StoppedTypingIndicator, TypingIndicator
from stashit.services.gateway import ChatGateway
from stashit.websockets.connection import Connection
from stashit.websockets.connection_registry import ConnectionRegistry
from stashit.websockets.room_manager import RoomManager

logger = get_logger(__name__)


class SignalRelay:
    """타이핑 표시와 읽음 확인 전달"""

    def __init__(self, gateway: ChatGateway, rooms: RoomManager, registry: ConnectionRegistry):
        self.gateway = gateway
        self.rooms = rooms
        self.registry = registry

    async def typing_start(self, connection: Connection, conversation_id: str) -> None:
        """대화방의 다른 멤버들에게 user-typing 전송 (자기 자신 제외)"""
        if not self.rooms.is_member(connection, conversation_id):
            return

        payload = TypingIndicator(
            user_id=connection.user_id,
            user_name=connection.user_name,
            conversation_id=conversation_id
        )
        await self.rooms.broadcast(conversation_id, "user-typing", payload.to_wire(), exclude=connection)

    async def typing_stop(self, connection: Connection, conversation_id: str) -> None:
        """대화방의 다른 멤버들에게 user-stopped-typing 전송 (자기 자신 제외)"""
        if not self.rooms.is_member(connection, conversation_id):
            return

        payload = StoppedTypingIndicator(user_id=connection.user_id, conversation_id=conversation_id)
        await self.rooms.broadcast(conversation_id, "user-stopped-typing", payload.to_wire(), exclude=connection)

    async def mark_read(self, connection: Connection, message_id: str) -> bool:
        """
        수신자가 자신이 받은 메시지를 읽음 처리하고 발신자에게 알립니다.

        본인이 수신자가 아닌 메시지이거나 존재하지 않는 메시지는 조용히 무시합니다.
        메시지 존재 여부가 드러나지 않도록 오류 이벤트도 보내지 않습니다.

        Returns:
            bool: 읽음 처리되어 알림을 보냈으면 True
        """
        try:
            sender_id = await self.gateway.mark_message_read(message_id, connection.user_id)
        except PersistenceException as e:
            logger.error(f"Mark read failed for message {message_id}: {e.message}")
            return False

        if sender_id is None:
            logger.debug(f"Mark read ignored: message {message_id} not received by user {connection.user_id}")
            return False

        receipt = MessageReadReceipt(message_id=message_id, read_by=connection.user_id)
        await self.registry.send_to_user(sender_id, "message-read", receipt.to_wire())

        log_websocket_event(logger, "mark-read", connection.user_id, message_id=message_id)
        return True
