import json
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Type, TypeVar

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError

from stashit.core.errors import BaseCustomException, InvalidPayloadException
from stashit.core.logging import get_logger, log_websocket_event
from stashit.schemas.events import (
    ClientFrame,
    ConversationRef,
    MarkReadEvent,
    SendMessageEvent,
    TypingEvent,
)
from stashit.services.gateway import ChatGateway
from stashit.websockets.connection import ConnectedUser, Connection
from stashit.websockets.connection_registry import ConnectionRegistry
from stashit.websockets.message_pipeline import MessageDeliveryPipeline
from stashit.websockets.room_manager import RoomManager
from stashit.websockets.signal_relay import SignalRelay

logger = get_logger(__name__)

PayloadT = TypeVar("PayloadT", bound=BaseModel)


class PresenceMirror(Protocol):
    async def set_online(self, user_id: str, session_id: Optional[str] = None) -> bool: ...

    async def set_offline(self, user_id: str) -> bool: ...


class ChatServer:
    """
    실시간 메시징 서버 상태와 이벤트 처리

    연결 레지스트리와 대화방 그룹은 이 인스턴스가 소유하며,
    애플리케이션 시작 시 하나 생성되어 app.state.chat_server에 저장됩니다.
    """

    def __init__(self, gateway: ChatGateway, presence: Optional[PresenceMirror] = None):
        self.gateway = gateway
        self.presence = presence
        self.registry = ConnectionRegistry()
        self.rooms = RoomManager(gateway)
        self.pipeline = MessageDeliveryPipeline(gateway, self.rooms, self.registry)
        self.relay = SignalRelay(gateway, self.rooms, self.registry)

        self._handlers: Dict[str, Callable[[Connection, Any], Awaitable[None]]] = {
            "join-conversation": self._on_join_conversation,
            "leave-conversation": self._on_leave_conversation,
            "typing": self._on_typing,
            "stop-typing": self._on_stop_typing,
            "send-message": self._on_send_message,
            "mark-read": self._on_mark_read,
        }

    # =========================================================================
    # 연결 수명 주기
    # =========================================================================

    async def connect(self, websocket: WebSocket, user: ConnectedUser) -> Connection:
        """인증이 끝난 WebSocket을 등록합니다."""
        connection = Connection(websocket, user)
        became_online = self.registry.on_connect(user.id, connection)

        log_websocket_event(logger, "connect", user.id, connection_id=connection.id)

        if became_online and self.presence is not None:
            await self.presence.set_online(user.id, session_id=connection.id)
        return connection

    async def disconnect(self, connection: Connection) -> None:
        """대화방 그룹과 레지스트리에서 연결을 제거합니다."""
        connection.closed = True
        self.rooms.leave_all(connection)
        became_offline = self.registry.on_disconnect(connection.user_id, connection)

        log_websocket_event(logger, "disconnect", connection.user_id, connection_id=connection.id)

        if became_offline and self.presence is not None:
            await self.presence.set_offline(connection.user_id)

    async def serve(self, connection: Connection) -> None:
        """
        연결이 끊길 때까지 프레임을 수신하여 처리합니다.

        한 연결의 프레임은 수신 순서대로 하나씩 처리됩니다.
        """
        while True:
            try:
                message = await connection.websocket.receive()
            except WebSocketDisconnect:
                break

            if message["type"] == "websocket.disconnect":
                break

            text = message.get("text")
            if text is None:
                # 바이너리 프레임
                logger.warning(f"Binary frame from user {connection.user_id} rejected")
                await connection.emit("error", "Invalid message format")
                continue

            try:
                frame = json.loads(text)
            except ValueError as e:
                # JSON 파싱 오류
                logger.warning(f"Invalid JSON from user {connection.user_id}: {e}")
                await connection.emit("error", "Invalid message format")
                continue

            await self.handle_frame(connection, frame)

    async def handle_frame(self, connection: Connection, frame: Any) -> None:
        """
        프레임 하나를 처리합니다.

        처리 중 발생한 오류는 해당 연결에만 error 이벤트로 전달되며,
        다른 연결이나 프로세스에는 영향을 주지 않습니다.
        """
        event = None
        try:
            parsed = _parse(ClientFrame, frame, "frame")
            event = parsed.event

            handler = self._handlers.get(event)
            if handler is None:
                raise InvalidPayloadException(f"Unknown event: {event}")

            await handler(connection, parsed.data)

        except BaseCustomException as e:
            logger.warning(
                f"Event '{event}' from user {connection.user_id} rejected: {e.message}",
                extra={"error_code": e.error}
            )
            await connection.emit("error", e.message)

        except Exception as e:
            logger.error(f"Error processing event '{event}' from user {connection.user_id}: {e}", exc_info=True)
            await connection.emit("error", "Internal server error")

    # =========================================================================
    # 이벤트 핸들러
    # =========================================================================

    async def _on_join_conversation(self, connection: Connection, data: Any) -> None:
        try:
            ref = ConversationRef.from_data(data)
        except ValidationError as e:
            raise InvalidPayloadException("Invalid payload for join-conversation") from e
        await self.rooms.join(connection, ref.conversation_id)

    async def _on_leave_conversation(self, connection: Connection, data: Any) -> None:
        try:
            ref = ConversationRef.from_data(data)
        except ValidationError as e:
            raise InvalidPayloadException("Invalid payload for leave-conversation") from e
        await self.rooms.leave(connection, ref.conversation_id)

    async def _on_typing(self, connection: Connection, data: Any) -> None:
        payload = _parse(TypingEvent, data, "typing")
        await self.relay.typing_start(connection, payload.conversation_id)

    async def _on_stop_typing(self, connection: Connection, data: Any) -> None:
        payload = _parse(TypingEvent, data, "stop-typing")
        await self.relay.typing_stop(connection, payload.conversation_id)

    async def _on_send_message(self, connection: Connection, data: Any) -> None:
        payload = _parse(SendMessageEvent, data, "send-message")
        await self.pipeline.send_message(
            connection,
            payload.conversation_id,
            payload.content,
            payload.product_id
        )

    async def _on_mark_read(self, connection: Connection, data: Any) -> None:
        payload = _parse(MarkReadEvent, data, "mark-read")
        await self.relay.mark_read(connection, payload.message_id)


def _parse(model: Type[PayloadT], data: Any, event: str) -> PayloadT:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidPayloadException(f"Invalid payload for {event}") from e
