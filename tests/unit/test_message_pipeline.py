import asyncio
from datetime import datetime

import pytest
from sqlalchemy import select

from stashit.core.errors import InvalidContentException, PersistenceException, ResourceNotFoundException
from stashit.models.conversations import Conversation
from stashit.models.messages import Message
from stashit.websockets.connection import ConnectedUser, Connection
from stashit.websockets.connection_registry import ConnectionRegistry
from stashit.websockets.message_pipeline import MessageDeliveryPipeline
from stashit.websockets.room_manager import RoomManager
from tests.conftest import FakeWebSocket, connected_user


class StubGateway:
    """
    저장 지연을 흉내 내는 게이트웨이

    "slow"로 시작하는 메시지는 저장에 더 오래 걸립니다.
    """

    def __init__(self, conversation: Conversation, fail_touch: bool = False, fail_create: bool = False):
        self.conversation = conversation
        self.fail_touch = fail_touch
        self.fail_create = fail_create
        self.saved = []

    async def find_conversation(self, conversation_id, requesting_user_id):
        if self.conversation.has_participant(requesting_user_id):
            return self.conversation
        return None

    async def create_message(self, sender_id, receiver_id, product_id, content):
        if self.fail_create:
            raise PersistenceException("insert:messages")
        await asyncio.sleep(0.05 if content.startswith("slow") else 0)
        message = Message(
            id=f"m{len(self.saved) + 1}",
            sender_id=sender_id,
            receiver_id=receiver_id,
            product_id=product_id,
            content=content,
            is_read=False,
            created_at=datetime.utcnow()
        )
        self.saved.append(message)
        return message

    async def touch_conversation(self, conversation_id, at=None):
        if self.fail_touch:
            raise PersistenceException("update:conversations")


def make_connection(user) -> Connection:
    return Connection(FakeWebSocket(), connected_user(user))


def build_pipeline(gateway):
    registry = ConnectionRegistry()
    rooms = RoomManager(gateway)
    return MessageDeliveryPipeline(gateway, rooms, registry, max_content_length=1000), rooms, registry


class TestSendMessage:
    """메시지 전송 파이프라인 테스트"""

    @pytest.mark.asyncio
    async def test_message_is_stored_and_broadcast(self, gateway, conversation, buyer, seller, product, test_session):
        pipeline, rooms, registry = build_pipeline(gateway)
        sender = make_connection(buyer)
        registry.on_connect(buyer.id, sender)
        await rooms.join(sender, conversation.id)

        message = await pipeline.send_message(sender, conversation.id, "Is this available?")

        stored = (await test_session.execute(select(Message).where(Message.id == message.id))).scalar_one()
        assert stored.sender_id == buyer.id
        assert stored.receiver_id == seller.id
        assert stored.product_id == product.id
        assert stored.is_read is False

        # 발신자 본인도 대화방 멤버로서 new-message를 받음
        [frame] = sender.websocket.events("new-message")
        data = frame["data"]
        assert data["id"] == message.id
        assert data["senderId"] == buyer.id
        assert data["receiverId"] == seller.id
        assert data["productId"] == product.id
        assert data["content"] == "Is this available?"
        assert data["isRead"] is False
        assert data["sender"] == {"id": buyer.id, "firstName": "Alice", "lastName": "Kim"}
        assert data["receiver"]["id"] == seller.id
        assert data["product"] == {"id": product.id, "title": "Calculus Textbook"}
        assert "createdAt" in data

    @pytest.mark.asyncio
    async def test_receiver_gets_notification_without_joining(self, gateway, conversation, buyer, seller):
        pipeline, rooms, registry = build_pipeline(gateway)
        sender = make_connection(buyer)
        receiver = make_connection(seller)
        registry.on_connect(buyer.id, sender)
        registry.on_connect(seller.id, receiver)

        message = await pipeline.send_message(sender, conversation.id, "Is this available?")

        assert receiver.websocket.events("new-message") == []
        [frame] = receiver.websocket.events("message-notification")
        assert frame["data"] == {
            "messageId": message.id,
            "senderId": buyer.id,
            "senderName": "Alice",
            "content": "Is this available?",
            "conversationId": conversation.id,
            "productTitle": "Calculus Textbook"
        }
        # 발신자에게는 알림이 가지 않음
        assert sender.websocket.events("message-notification") == []

    @pytest.mark.asyncio
    async def test_content_is_trimmed(self, gateway, conversation, buyer):
        pipeline, _, _ = build_pipeline(gateway)

        message = await pipeline.send_message(make_connection(buyer), conversation.id, "   hello   ")

        assert message.content == "hello"

    @pytest.mark.asyncio
    async def test_client_product_id_is_ignored(self, gateway, conversation, buyer, product):
        pipeline, _, _ = build_pipeline(gateway)

        message = await pipeline.send_message(make_connection(buyer), conversation.id, "hi", product_id="other-product")

        assert message.product_id == product.id

    @pytest.mark.asyncio
    async def test_conversation_last_activity_is_updated(self, gateway, conversation, buyer, test_session):
        pipeline, _, _ = build_pipeline(gateway)
        before = conversation.last_message_at

        message = await pipeline.send_message(make_connection(buyer), conversation.id, "hi")

        refreshed = (await test_session.execute(
            select(Conversation.last_message_at).where(Conversation.id == conversation.id)
        )).scalar_one()
        assert refreshed == message.created_at
        assert refreshed >= before

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["", "   ", "\n\t", None])
    async def test_blank_content_is_rejected(self, gateway, conversation, buyer, test_session, content):
        pipeline, _, _ = build_pipeline(gateway)

        with pytest.raises(InvalidContentException) as exc_info:
            await pipeline.send_message(make_connection(buyer), conversation.id, content)

        assert exc_info.value.message == "Message content cannot be empty"
        assert (await test_session.execute(select(Message))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_too_long_content_is_rejected(self, gateway, conversation, buyer):
        pipeline, _, _ = build_pipeline(gateway)

        with pytest.raises(InvalidContentException):
            await pipeline.send_message(make_connection(buyer), conversation.id, "x" * 1001)

    @pytest.mark.asyncio
    async def test_non_participant_gets_not_found(self, gateway, conversation, outsider, test_session):
        pipeline, _, _ = build_pipeline(gateway)

        with pytest.raises(ResourceNotFoundException) as exc_info:
            await pipeline.send_message(make_connection(outsider), conversation.id, "hello")

        assert exc_info.value.message == "Conversation not found"
        assert (await test_session.execute(select(Message))).scalars().all() == []


class TestSendMessageFailures:
    """저장 실패 처리 테스트"""

    def _conversation(self):
        return Conversation(id="conv1", user1_id="user-a", user2_id="user-b", product_id="p1")

    def _connection(self, user_id="user-a"):
        return Connection(FakeWebSocket(), ConnectedUser(id=user_id, first_name="A"))

    @pytest.mark.asyncio
    async def test_create_failure_raises_generic_message(self):
        gateway = StubGateway(self._conversation(), fail_create=True)
        pipeline, rooms, _ = build_pipeline(gateway)
        sender = self._connection()
        await rooms.join(sender, "conv1")

        with pytest.raises(PersistenceException) as exc_info:
            await pipeline.send_message(sender, "conv1", "hello")

        assert exc_info.value.message == "Failed to send message"
        assert sender.websocket.events("new-message") == []
        assert pipeline.pending_conversations() == 0

    @pytest.mark.asyncio
    async def test_touch_failure_does_not_block_delivery(self):
        gateway = StubGateway(self._conversation(), fail_touch=True)
        pipeline, rooms, _ = build_pipeline(gateway)
        sender = self._connection()
        await rooms.join(sender, "conv1")

        await pipeline.send_message(sender, "conv1", "hello")

        assert len(sender.websocket.events("new-message")) == 1


class TestDeliveryOrdering:
    """대화방 단위 순서 보장 테스트"""

    @pytest.mark.asyncio
    async def test_broadcast_order_matches_store_order(self):
        conversation = Conversation(id="conv1", user1_id="user-a", user2_id="user-b", product_id="p1")
        gateway = StubGateway(conversation)
        pipeline, rooms, _ = build_pipeline(gateway)
        watcher = Connection(FakeWebSocket(), ConnectedUser(id="user-b", first_name="B"))
        await rooms.join(watcher, "conv1")
        sender = Connection(FakeWebSocket(), ConnectedUser(id="user-a", first_name="A"))

        await asyncio.gather(
            pipeline.send_message(sender, "conv1", "slow first"),
            pipeline.send_message(sender, "conv1", "second"),
        )

        stored = [message.content for message in gateway.saved]
        delivered = [frame["data"]["content"] for frame in watcher.websocket.events("new-message")]
        assert stored == ["slow first", "second"]
        assert delivered == stored
        assert pipeline.pending_conversations() == 0
