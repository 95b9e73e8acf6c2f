import json

import pytest
import pytest_asyncio
from decimal import Decimal
from typing import Any, AsyncGenerator, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from stashit.database.postgres import Base
from stashit.models.users import User
from stashit.models.products import Product
from stashit.models.conversations import Conversation
from stashit.models.messages import Message
from stashit.services.gateway import ChatGateway
from stashit.utils.auth import create_access_token
from stashit.websockets.connection import ConnectedUser, Connection
from stashit.websockets.handlers import ChatServer


# 테스트용 인메모리 SQLite 데이터베이스 설정
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeWebSocket:
    """
    전송된 프레임을 기록하는 가짜 WebSocket

    incoming에 넣은 항목을 순서대로 ASGI 수신 메시지로 돌려줍니다.
    dict/list는 JSON 텍스트 프레임, str은 그대로의 텍스트 프레임, bytes는 바이너리 프레임이 되며,
    모두 소진되면 websocket.disconnect 메시지를 돌려줍니다.
    """

    def __init__(self, incoming: Optional[List[Any]] = None, fail_send: bool = False):
        self.incoming = list(incoming or [])
        self.fail_send = fail_send
        self.sent: List[dict] = []

    async def send_json(self, data: Any):
        if self.fail_send:
            raise RuntimeError("Cannot call send once a close message has been sent.")
        self.sent.append(data)

    async def receive(self) -> dict:
        if not self.incoming:
            return {"type": "websocket.disconnect", "code": 1000}
        frame = self.incoming.pop(0)
        if isinstance(frame, Exception):
            raise frame
        if isinstance(frame, bytes):
            return {"type": "websocket.receive", "bytes": frame}
        if isinstance(frame, str):
            return {"type": "websocket.receive", "text": frame}
        return {"type": "websocket.receive", "text": json.dumps(frame)}

    def events(self, name: Optional[str] = None) -> List[dict]:
        """기록된 프레임 중 특정 이벤트만 반환"""
        return [frame for frame in self.sent if name is None or frame["event"] == name]

    def event_names(self) -> List[str]:
        return [frame["event"] for frame in self.sent]


@pytest_asyncio.fixture
async def test_engine():
    """테스트용 비동기 데이터베이스 엔진 생성"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False
    )

    # 테이블 생성
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # 정리
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """테스트용 데이터베이스 세션"""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def gateway(session_factory) -> ChatGateway:
    return ChatGateway(session_factory)


@pytest_asyncio.fixture
async def chat_server(gateway) -> ChatServer:
    """격리된 실시간 메시징 서버 (Redis 미러 없음)"""
    return ChatServer(gateway)


async def _create_user(session: AsyncSession, email: str, first_name: str, last_name: str) -> User:
    user = User(
        email=email,
        password="$2b$12$hashedpasswordplaceholder",
        first_name=first_name,
        last_name=last_name,
        college="State University"
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest_asyncio.fixture
async def buyer(test_session) -> User:
    """테스트용 구매자 (대화 참여자 A)"""
    return await _create_user(test_session, "alice@college.edu", "Alice", "Kim")


@pytest_asyncio.fixture
async def seller(test_session) -> User:
    """테스트용 판매자 (대화 참여자 B)"""
    return await _create_user(test_session, "bob@college.edu", "Bob", "Lee")


@pytest_asyncio.fixture
async def outsider(test_session) -> User:
    """대화에 참여하지 않은 사용자 (C)"""
    return await _create_user(test_session, "carol@college.edu", "Carol", "Park")


@pytest_asyncio.fixture
async def product(test_session, seller) -> Product:
    """판매자의 상품"""
    product = Product(
        seller_id=seller.id,
        title="Calculus Textbook",
        description="8th edition, lightly used",
        price=Decimal("45.00"),
        condition="GOOD",
        category="BOOKS"
    )
    test_session.add(product)
    await test_session.commit()
    await test_session.refresh(product)
    return product


@pytest_asyncio.fixture
async def conversation(test_session, buyer, seller, product) -> Conversation:
    """구매자와 판매자 간 상품 대화방"""
    conversation = Conversation(
        user1_id=min(buyer.id, seller.id),
        user2_id=max(buyer.id, seller.id),
        product_id=product.id
    )
    test_session.add(conversation)
    await test_session.commit()
    await test_session.refresh(conversation)
    return conversation


@pytest_asyncio.fixture
async def message_to_seller(test_session, buyer, seller, product) -> Message:
    """구매자가 판매자에게 보낸 읽지 않은 메시지"""
    message = Message(
        sender_id=buyer.id,
        receiver_id=seller.id,
        product_id=product.id,
        content="Is this available?"
    )
    test_session.add(message)
    await test_session.commit()
    await test_session.refresh(message)
    return message


def connected_user(user: User) -> ConnectedUser:
    return ConnectedUser(id=user.id, first_name=user.first_name, last_name=user.last_name)


async def open_connection(server: ChatServer, user: User, incoming: Optional[List[Any]] = None) -> Connection:
    """FakeWebSocket으로 서버에 연결을 등록합니다."""
    return await server.connect(FakeWebSocket(incoming), connected_user(user))


@pytest.fixture
def token_for():
    """auth-service 형식의 토큰 생성 함수"""
    def _token_for(user_id: str) -> str:
        return create_access_token(data={"userId": user_id})
    return _token_for
