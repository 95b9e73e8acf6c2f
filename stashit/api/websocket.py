from typing import Optional

from fastapi import APIRouter, Query, WebSocket, status

from stashit.core.errors import AuthenticationException
from stashit.core.logging import clear_request_context, get_logger, set_connection_context
from stashit.middleware.logging_middleware import get_client_ip
from stashit.utils.auth import extract_bearer_token
from stashit.websockets.auth import authenticate_websocket
from stashit.websockets.handlers import ChatServer

logger = get_logger(__name__)

router = APIRouter(tags=["WebSocket"])


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
):
    """
    실시간 메시징 WebSocket 엔드포인트

    Args:
        websocket: WebSocket 연결 객체
        token: JWT 액세스 토큰 (Authorization 헤더를 보낼 수 없는 브라우저 클라이언트용)
    """
    server: ChatServer = websocket.app.state.chat_server

    # 1. 인증 (헤더 우선, 없으면 쿼리 파라미터)
    credential = extract_bearer_token(websocket.headers.get("authorization")) or token
    try:
        user = await authenticate_websocket(credential, server.gateway)
    except AuthenticationException as e:
        logger.warning(f"WebSocket authentication failed from {get_client_ip(websocket)}")
        # 수락 전에 닫으면 클라이언트는 1008 대신 HTTP 403을 받음
        await websocket.accept()
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
        return

    # 2. 연결 등록
    await websocket.accept()
    connection = await server.connect(websocket, user)
    set_connection_context(connection.id, user.id)

    # 3. 메시지 수신 루프
    try:
        await server.serve(connection)
    finally:
        await server.disconnect(connection)
        clear_request_context()
