from typing import Optional

from stashit.core.errors import AuthenticationException, PersistenceException, invalid_token_error
from stashit.core.logging import get_logger, log_authentication_event
from stashit.services.gateway import ChatGateway
from stashit.utils.auth import verify_token
from stashit.websockets.connection import ConnectedUser

logger = get_logger(__name__)


async def authenticate_websocket(token: Optional[str], gateway: ChatGateway) -> ConnectedUser:
    """
    WebSocket 연결 요청의 토큰을 검증하고 사용자 정보를 반환합니다.

    Args:
        token: Authorization 헤더 또는 token 쿼리 파라미터에서 추출한 JWT
        gateway: 사용자 조회에 사용할 영속성 게이트웨이

    Returns:
        ConnectedUser: 인증된 사용자

    Raises:
        AuthenticationException: 토큰 누락/무효/블랙리스트, 또는 사용자가 없는 경우.
            클라이언트에는 원인을 구분하지 않은 같은 메시지가 전달됩니다.
    """
    try:
        user_id = await verify_token(token)
    except AuthenticationException:
        log_authentication_event(logger, "websocket_handshake", success=False, reason="invalid_token")
        raise

    try:
        user = await gateway.get_user(user_id)
    except PersistenceException as e:
        logger.error(f"User lookup failed during WebSocket authentication: {e.message}")
        raise invalid_token_error() from e

    if user is None:
        log_authentication_event(logger, "websocket_handshake", user_id=user_id, success=False, reason="user_not_found")
        raise invalid_token_error()

    log_authentication_event(logger, "websocket_handshake", user_id=user.id)
    return ConnectedUser(id=user.id, first_name=user.first_name, last_name=user.last_name)
