import pytest
from unittest.mock import AsyncMock
from sqlalchemy import select

from stashit.core.errors import PersistenceException
from stashit.models.messages import Message
from stashit.websockets.connection import Connection
from stashit.websockets.connection_registry import ConnectionRegistry
from stashit.websockets.room_manager import RoomManager
from stashit.websockets.signal_relay import SignalRelay
from tests.conftest import FakeWebSocket, connected_user


def make_connection(user) -> Connection:
    return Connection(FakeWebSocket(), connected_user(user))


def build_relay(gateway):
    registry = ConnectionRegistry()
    rooms = RoomManager(gateway)
    return SignalRelay(gateway, rooms, registry), rooms, registry


class TestTypingIndicators:
    """타이핑 표시 전달 테스트"""

    @pytest.mark.asyncio
    async def test_typing_reaches_other_members_only(self, gateway, conversation, buyer, seller):
        relay, rooms, _ = build_relay(gateway)
        typist = make_connection(buyer)
        other = make_connection(seller)
        await rooms.join(typist, conversation.id)
        await rooms.join(other, conversation.id)

        await relay.typing_start(typist, conversation.id)

        assert other.websocket.events("user-typing") == [{
            "event": "user-typing",
            "data": {"userId": buyer.id, "userName": "Alice", "conversationId": conversation.id}
        }]
        assert typist.websocket.events("user-typing") == []

    @pytest.mark.asyncio
    async def test_stop_typing_reaches_other_members_only(self, gateway, conversation, buyer, seller):
        relay, rooms, _ = build_relay(gateway)
        typist = make_connection(buyer)
        other = make_connection(seller)
        await rooms.join(typist, conversation.id)
        await rooms.join(other, conversation.id)

        await relay.typing_stop(typist, conversation.id)

        assert other.websocket.events("user-stopped-typing") == [{
            "event": "user-stopped-typing",
            "data": {"userId": buyer.id, "conversationId": conversation.id}
        }]
        assert typist.websocket.events("user-stopped-typing") == []

    @pytest.mark.asyncio
    async def test_typing_from_non_member_is_dropped(self, gateway, conversation, buyer, outsider):
        relay, rooms, _ = build_relay(gateway)
        member = make_connection(buyer)
        intruder = make_connection(outsider)
        await rooms.join(member, conversation.id)

        await relay.typing_start(intruder, conversation.id)
        await relay.typing_stop(intruder, conversation.id)

        assert member.websocket.event_names() == ["joined-conversation"]
        assert intruder.websocket.sent == []


class TestMarkRead:
    """읽음 확인 테스트"""

    @pytest.mark.asyncio
    async def test_receiver_marks_read_and_sender_is_notified(self, gateway, message_to_seller, buyer, seller, test_session):
        relay, _, registry = build_relay(gateway)
        sender_connection = make_connection(buyer)
        reader = make_connection(seller)
        registry.on_connect(buyer.id, sender_connection)
        registry.on_connect(seller.id, reader)

        assert await relay.mark_read(reader, message_to_seller.id) is True

        is_read = (await test_session.execute(
            select(Message.is_read).where(Message.id == message_to_seller.id)
        )).scalar_one()
        assert is_read is True
        assert sender_connection.websocket.sent == [{
            "event": "message-read",
            "data": {"messageId": message_to_seller.id, "readBy": seller.id}
        }]
        assert reader.websocket.sent == []

    @pytest.mark.asyncio
    async def test_repeated_mark_read_notifies_again(self, gateway, message_to_seller, buyer, seller):
        relay, _, registry = build_relay(gateway)
        sender_connection = make_connection(buyer)
        registry.on_connect(buyer.id, sender_connection)
        reader = make_connection(seller)

        await relay.mark_read(reader, message_to_seller.id)
        await relay.mark_read(reader, message_to_seller.id)

        assert len(sender_connection.websocket.events("message-read")) == 2

    @pytest.mark.asyncio
    async def test_sender_cannot_mark_own_message(self, gateway, message_to_seller, buyer, test_session):
        relay, _, registry = build_relay(gateway)
        sender_connection = make_connection(buyer)
        registry.on_connect(buyer.id, sender_connection)

        assert await relay.mark_read(sender_connection, message_to_seller.id) is False

        is_read = (await test_session.execute(
            select(Message.is_read).where(Message.id == message_to_seller.id)
        )).scalar_one()
        assert is_read is False
        assert sender_connection.websocket.sent == []

    @pytest.mark.asyncio
    async def test_unknown_message_is_ignored_silently(self, gateway, seller):
        relay, _, _ = build_relay(gateway)
        reader = make_connection(seller)

        assert await relay.mark_read(reader, "missing-message") is False
        assert reader.websocket.sent == []

    @pytest.mark.asyncio
    async def test_persistence_failure_is_swallowed(self, seller):
        gateway = AsyncMock()
        gateway.mark_message_read.side_effect = PersistenceException("update:messages")
        relay, _, _ = build_relay(gateway)
        reader = make_connection(seller)

        assert await relay.mark_read(reader, "m1") is False
        assert reader.websocket.sent == []
