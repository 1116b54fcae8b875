from typing import Optional, Dict, Any, List
from fastapi import HTTPException, status
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """표준 에러 응답 모델"""
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None
    status_code: int


class ValidationError(BaseModel):
    """검증 에러 세부사항"""
    field: str
    message: str
    value: Optional[Any] = None


class ValidationErrorResponse(BaseModel):
    """검증 에러 응답 모델"""
    error: str = "validation_error"
    message: str
    validation_errors: List[ValidationError]
    status_code: int


# =============================================================================
# 커스텀 예외 클래스들
# =============================================================================

class BaseCustomException(HTTPException):
    """기본 커스텀 예외 클래스"""
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
        self.status_code = status_code
        super().__init__(status_code=status_code, detail=self.to_dict())

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """예외를 딕셔너리로 변환"""
        return {
            "error": self.error,
            "message": self.message,
            "details": self.details,
            "status_code": self.status_code
        }


class AuthenticationException(BaseCustomException):
    """인증 실패 예외"""
    def __init__(
        self,
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error="authentication_error",
            message=message,
            details=details
        )


class AuthorizationException(BaseCustomException):
    """권한 부족 예외"""
    def __init__(
        self,
        message: str = "Access denied",
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


class ConflictException(BaseCustomException):
    """리소스 충돌 예외"""
    def __init__(
        self,
        message: str = "Resource conflict",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error="resource_conflict",
            message=message,
            details=details
        )


class BusinessLogicException(BaseCustomException):
    """비즈니스 로직 예외"""
    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error: str = "business_logic_error"
    ):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error=error,
            message=message,
            details=details
        )


class ServerErrorException(BaseCustomException):
    """서버 내부 에러 예외"""
    def __init__(
        self,
        error: str = "internal_server_error",
        message: str = "An unexpected error occurred",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error=error,
            message=message,
            details=details
        )


# =============================================================================
# 채팅 도메인 예외
# =============================================================================

class InvalidParticipants(BusinessLogicException):
    """잘못된 참여자 쌍"""
    def __init__(self, message: str = "Invalid chat participants", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details, error="invalid_participants")


class InvalidPagination(BusinessLogicException):
    """잘못된 페이지 파라미터"""
    def __init__(self, page: int, size: int):
        super().__init__(
            "page must be >= 0 and size must be >= 1",
            details={"page": page, "size": size},
            error="invalid_pagination"
        )


class UserNotFound(ResourceNotFoundException):
    def __init__(self, user_id: Optional[int] = None):
        super().__init__("User", details={"user_id": user_id} if user_id else None)


class ListingNotFound(ResourceNotFoundException):
    def __init__(self, listing_id: Optional[int] = None):
        super().__init__("Listing", details={"listing_id": listing_id} if listing_id else None)


class RoomNotFound(ResourceNotFoundException):
    def __init__(self, room: Optional[str] = None):
        super().__init__("Chat room", details={"room": room} if room else None)


class RoomAlreadyExists(ConflictException):
    def __init__(self, room_id: Optional[str] = None):
        self.room_id = room_id
        super().__init__(
            "Chat room already exists",
            details={"room_id": room_id} if room_id else None
        )


class NotAParticipant(AuthorizationException):
    def __init__(self, user_id: Optional[int] = None):
        super().__init__(
            "Access denied to this chat room",
            details={"user_id": user_id} if user_id else None
        )


class StoreFailure(ServerErrorException):
    """채팅 저장소 오류 (자동 재시도 없음)"""
    def __init__(self, message: str = "Chat store operation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(error="store_failure", message=message, details=details)


class SubscriptionBroken(Exception):
    """SSE 구독 쓰기 실패 - 구독 내부에서만 처리"""


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


def create_validation_error_response(
    message: str,
    validation_errors: List[ValidationError],
    status_code: int = status.HTTP_400_BAD_REQUEST
) -> ValidationErrorResponse:
    """검증 에러 응답 생성"""
    return ValidationErrorResponse(
        message=message,
        validation_errors=validation_errors,
        status_code=status_code
    )


def invalid_token_error():
    """잘못된 토큰 에러"""
    return AuthenticationException("Invalid or expired token")
