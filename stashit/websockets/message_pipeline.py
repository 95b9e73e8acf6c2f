"""
메시지 전송 파이프라인

send-message 이벤트를 검증하고, 저장한 뒤 대화방과 수신자 개인 채널로 전달합니다.

처리 순서:
1. 내용 검증 (공백 제거 후 비어 있거나 너무 길면 거부)
2. 대화방 조회 및 참여자 확인
3. 수신자 결정 (발신자가 아닌 참여자)
4. 메시지 저장 (상품 ID는 대화방의 상품 ID 사용)
5. 대화방 마지막 메시지 시각 갱신 (실패해도 계속 진행)
6. 대화방 그룹 전체에 new-message 브로드캐스트 (발신자 포함)
7. 수신자 개인 채널로 message-notification 전송

4~7단계는 대화방별 잠금으로 순차 처리되어, 같은 대화방의 저장 순서와 전달 순서가 일치합니다.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from stashit.core.config import settings
from stashit.core.errors import (
    PersistenceException,
    conversation_not_found_error,
    empty_message_error,
    message_too_long_error,
)
from stashit.core.logging import get_logger, log_websocket_event
from stashit.models.messages import Message
from stashit.schemas.message import MessageNotification, MessageResponse
from stashit.services.gateway import ChatGateway
from stashit.websockets.connection import Connection
from stashit.websockets.connection_registry import ConnectionRegistry
from stashit.websockets.room_manager import RoomManager

logger = get_logger(__name__)


class MessageDeliveryPipeline:
    """메시지 저장 및 전달"""

    def __init__(
        self,
        gateway: ChatGateway,
        rooms: RoomManager,
        registry: ConnectionRegistry,
        max_content_length: int = settings.max_message_length
    ):
        self.gateway = gateway
        self.rooms = rooms
        self.registry = registry
        self.max_content_length = max_content_length
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_holders: Dict[str, int] = {}

    async def send_message(
        self,
        connection: Connection,
        conversation_id: str,
        content: Optional[str],
        product_id: Optional[str] = None
    ) -> Message:
        """
        메시지를 전송합니다.

        Args:
            connection: 발신자 연결
            conversation_id: 대화방 ID
            content: 메시지 내용
            product_id: 클라이언트가 보낸 상품 ID (저장에는 대화방의 상품 ID를 사용)

        Raises:
            InvalidContentException: 내용이 비어 있거나 너무 긴 경우
            ResourceNotFoundException: 대화방이 없거나 발신자가 참여자가 아닌 경우
            PersistenceException: 조회 또는 저장에 실패한 경우
        """
        text = (content or "").strip()
        if not text:
            raise empty_message_error()
        if len(text) > self.max_content_length:
            raise message_too_long_error(self.max_content_length)

        sender_id = connection.user_id

        try:
            conversation = await self.gateway.find_conversation(conversation_id, sender_id)
        except PersistenceException as e:
            raise PersistenceException(e.operation, message="Failed to send message") from e

        if conversation is None:
            raise conversation_not_found_error(conversation_id)

        receiver_id = conversation.other_participant_id(sender_id)
        if product_id and product_id != conversation.product_id:
            logger.warning(
                f"Ignoring client product id {product_id} for conversation {conversation_id}",
                extra={"conversation_product_id": conversation.product_id}
            )

        async with self._sequenced(conversation_id):
            try:
                message = await self.gateway.create_message(
                    sender_id=sender_id,
                    receiver_id=receiver_id,
                    product_id=conversation.product_id,
                    content=text
                )
            except PersistenceException as e:
                raise PersistenceException(e.operation, message="Failed to send message") from e

            try:
                await self.gateway.touch_conversation(conversation_id, message.created_at)
            except PersistenceException as e:
                logger.warning(f"Failed to update last activity of conversation {conversation_id}: {e.message}")

            await self.rooms.broadcast(
                conversation_id,
                "new-message",
                MessageResponse.model_validate(message).to_wire()
            )

            notification = MessageNotification(
                message_id=message.id,
                sender_id=sender_id,
                sender_name=connection.user_name,
                content=message.content,
                conversation_id=conversation_id,
                product_title=conversation.product.title if conversation.product else None
            )
            await self.registry.send_to_user(receiver_id, "message-notification", notification.to_wire())

        log_websocket_event(logger, "send-message", sender_id, conversation_id, message_id=message.id)
        return message

    def pending_conversations(self) -> int:
        """전송이 진행 중이거나 대기 중인 대화방 수"""
        return len(self._locks)

    @asynccontextmanager
    async def _sequenced(self, conversation_id: str) -> AsyncIterator[None]:
        """대화방별로 한 번에 하나의 저장/전달만 진행되도록 합니다."""
        lock = self._locks.setdefault(conversation_id, asyncio.Lock())
        self._lock_holders[conversation_id] = self._lock_holders.get(conversation_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_holders[conversation_id] -= 1
            if not self._lock_holders[conversation_id]:
                del self._lock_holders[conversation_id]
                del self._locks[conversation_id]
