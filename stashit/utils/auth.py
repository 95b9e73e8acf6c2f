from datetime import datetime, timedelta
from typing import Annotated, Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from stashit.core.config import settings
from stashit.core.errors import invalid_token_error
from stashit.database.redis import is_token_blacklisted

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)

DEFAULT_TOKEN_EXPIRE = timedelta(days=7)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """auth-service와 같은 형식({"userId": ..., "exp": ...})의 JWT 생성"""
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or DEFAULT_TOKEN_EXPIRE)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[dict]:
    """JWT 디코드. 서명 불일치, 만료 등은 None을 반환합니다."""
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """'Bearer <token>' 형식의 헤더에서 토큰 추출"""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization.removeprefix("Bearer ").strip()
    return token or None


async def verify_token(token: Optional[str]) -> str:
    """
    토큰을 검증하고 사용자 ID를 반환합니다.

    토큰 누락, 블랙리스트, 서명/만료 오류를 구분하지 않고 같은 인증 오류를 발생시킵니다.
    """
    if not token:
        raise invalid_token_error()

    if await is_token_blacklisted(token):
        raise invalid_token_error()

    payload = decode_access_token(token)
    if not payload:
        raise invalid_token_error()

    user_id = payload.get("userId")
    if not user_id:
        raise invalid_token_error()

    return str(user_id)


async def get_current_user_id(token: Annotated[Optional[str], Depends(oauth2_scheme)]) -> str:
    """HTTP 엔드포인트용 인증 의존성"""
    return await verify_token(token)
