"""
WebSocket 실시간 메시징 모듈

이 모듈은 FastAPI WebSocket을 사용하여 구매자/판매자 간 실시간 채팅을 제공합니다.

주요 구성 요소:
- connection_registry: 사용자별 연결 및 온라인 상태 관리
- room_manager: 대화방 그룹 참여/이탈 및 브로드캐스트
- message_pipeline: 메시지 저장 및 전달
- signal_relay: 타이핑 표시, 읽음 확인 전달
- handlers: 이벤트 처리 (ChatServer)
- auth: WebSocket 인증 처리
"""

from .connection import Connection, ConnectedUser
from .connection_registry import ConnectionRegistry
from .room_manager import RoomManager
from .message_pipeline import MessageDeliveryPipeline
from .signal_relay import SignalRelay
from .handlers import ChatServer
from .auth import authenticate_websocket

__all__ = [
    "Connection",
    "ConnectedUser",
    "ConnectionRegistry",
    "RoomManager",
    "MessageDeliveryPipeline",
    "SignalRelay",
    "ChatServer",
    "authenticate_websocket",
]
