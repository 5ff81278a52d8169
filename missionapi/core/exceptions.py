from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class BaseAPIException(HTTPException):
    """
    API 오류 공통 베이스

    detail 은 항상 {"success": False, "error": {code, message, details}} 형태.
    하위 클래스는 status_code / error_code / default_message 만 지정한다.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "ERROR_000"
    default_message: str = "Request failed"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(
            status_code=type(self).status_code,
            detail={
                "success": False,
                "error": {
                    "code": self.error_code,
                    "message": self.message,
                    "details": self.details,
                },
            },
        )

    def __str__(self) -> str:
        return self.message


class AuthenticationError(BaseAPIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "AUTH_001"
    default_message = "Authentication required"


class AuthorizationError(BaseAPIException):
    """역할 또는 소유자 불일치"""

    status_code = status.HTTP_403_FORBIDDEN
    error_code = "AUTH_002"
    default_message = "Access forbidden"


class ValidationError(BaseAPIException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "VALIDATION_001"
    default_message = "Validation failed"


class InvalidStateError(BaseAPIException):
    """현재 상태에서 허용되지 않는 전이"""

    status_code = status.HTTP_409_CONFLICT
    error_code = "STATE_001"
    default_message = "Invalid status"


class NotFoundError(BaseAPIException):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND_001"
    default_message = "Resource not found"


class InsufficientBalanceError(BaseAPIException):
    """요청 시점 잔액 부족 (승인 시점 부족은 REJECTED 결과로 처리)"""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "BALANCE_001"
    default_message = "Insufficient balance"


class InternalServerError(BaseAPIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "INTERNAL_001"
    default_message = "Internal server error"
