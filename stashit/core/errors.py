from typing import Optional, Dict, Any
from fastapi import HTTPException, status
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """표준 에러 응답 모델"""
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None
    status_code: int


# =============================================================================
# 커스텀 예외 클래스들
# =============================================================================

class BaseCustomException(HTTPException):
    """
    기본 커스텀 예외 클래스

    HTTP 엔드포인트에서는 상태 코드와 함께 JSON 응답으로,
    WebSocket 핸들러에서는 `error` 이벤트의 메시지로 변환됩니다.
    """
    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error = error
        self.message = message
        self.details = details
        self.status_code = status_code  # status_code를 먼저 설정
        super().__init__(status_code=status_code, detail=self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        """예외를 딕셔너리로 변환"""
        return {
            "error": self.error,
            "message": self.message,
            "details": self.details,
            "status_code": self.status_code
        }


class AuthenticationException(BaseCustomException):
    """인증 실패 예외 (잘못된/만료된/무효화된 토큰)"""
    def __init__(
        self,
        message: str = "Authentication error",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error="authentication_error",
            message=message,
            details=details
        )


class AuthorizationException(BaseCustomException):
    """권한 부족 예외 (대화 참여자가 아닌 경우)"""
    def __init__(
        self,
        message: str = "Not authorized",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error="authorization_error",
            message=message,
            details=details
        )


class ResourceNotFoundException(BaseCustomException):
    """리소스를 찾을 수 없음 예외"""
    def __init__(
        self,
        resource: str = "Resource",
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if message is None:
            message = f"{resource} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error="resource_not_found",
            message=message,
            details=details or {"resource": resource}
        )


class InvalidContentException(BaseCustomException):
    """메시지 내용 검증 실패 예외"""
    def __init__(
        self,
        message: str = "Message content cannot be empty",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error="invalid_content",
            message=message,
            details=details
        )


class InvalidPayloadException(BaseCustomException):
    """WebSocket 이벤트 형식 오류 예외"""
    def __init__(
        self,
        message: str = "Invalid event payload",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="invalid_payload",
            message=message,
            details=details
        )


class PersistenceException(BaseCustomException):
    """데이터베이스 작업 실패 예외 (내부 정보는 클라이언트에 노출하지 않음)"""
    def __init__(
        self,
        operation: str,
        message: str = "Database operation failed",
        details: Optional[Dict[str, Any]] = None
    ):
        self.operation = operation
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error="persistence_error",
            message=message,
            details=details or {"operation": operation}
        )


# =============================================================================
# 에러 헬퍼 함수들
# =============================================================================

def create_error_response(
    error: str,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None
) -> ErrorResponse:
    """표준 에러 응답 생성"""
    return ErrorResponse(
        error=error,
        message=message,
        status_code=status_code,
        details=details
    )


# =============================================================================
# 자주 사용되는 에러 팩토리 함수들
# =============================================================================

def invalid_token_error():
    """잘못된 토큰 에러 (원인을 구분하지 않음)"""
    return AuthenticationException()


def conversation_access_error():
    """대화방 참여 권한 없음 에러"""
    return AuthorizationException("Not authorized to join this conversation")


def conversation_not_found_error(conversation_id: Optional[str] = None):
    """대화방을 찾을 수 없음 에러"""
    details = {"conversation_id": conversation_id} if conversation_id else None
    return ResourceNotFoundException("Conversation", details=details)


def empty_message_error():
    """빈 메시지 에러"""
    return InvalidContentException()


def message_too_long_error(max_length: int):
    """메시지 길이 초과 에러"""
    return InvalidContentException(
        f"Message content cannot exceed {max_length} characters",
        details={"max_length": max_length}
    )
