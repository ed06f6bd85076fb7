"""
통합된 에러 처리 시스템

한국관광공사 API / 통계 / 북마크 예외를 에러 타입으로 분류하고
페이지에서 쓰는 JSON 에러 응답을 만든다.
not_found는 "리소스 없음" 화면, 나머지는 재시도 버튼이 있는 공통 에러 패널로 이어진다.
"""
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Dict, Any
import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from services.bookmark_store import AuthenticationRequiredError, BookmarkError, BookmarkOperationError
from services.stats_api import StatsError
from services.tour_api import (
    TourApiConfigError,
    TourApiError,
    TourApiNotFoundError,
    TourApiRateLimitError,
    TourApiValidationError,
)


class ErrorType(Enum):
    """에러 타입 분류"""
    SYSTEM_ERROR = "system_error"          # 설정 누락 등 시스템 내부 오류
    USER_ERROR = "user_error"              # 로그인 필요 등 사용자 상태 오류
    EXTERNAL_ERROR = "external_error"      # 외부 API 오류
    VALIDATION_ERROR = "validation_error"  # 입력 값 오류
    NOT_FOUND = "not_found"                # 리소스 없음
    RATE_LIMITED = "rate_limited"          # 호출 제한 초과


@dataclass
class ApiErrorInfo:
    """API 에러 모델"""
    error_type: ErrorType
    message: str
    user_message: str
    status_code: int
    retryable: bool = False
    details: Dict[str, Any] = field(default_factory=dict)
    original_exception: Optional[Exception] = None


class ErrorFactory:
    """에러 객체 생성 팩토리"""

    @staticmethod
    def create_not_found_error(message: str, exception: Exception = None) -> ApiErrorInfo:
        return ApiErrorInfo(
            error_type=ErrorType.NOT_FOUND,
            message=message,
            user_message="요청한 관광지 정보를 찾을 수 없습니다.",
            status_code=status.HTTP_404_NOT_FOUND,
            original_exception=exception,
        )

    @staticmethod
    def create_validation_error(message: str, exception: Exception = None) -> ApiErrorInfo:
        return ApiErrorInfo(
            error_type=ErrorType.VALIDATION_ERROR,
            message=message,
            user_message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            original_exception=exception,
        )

    @staticmethod
    def create_external_error(message: str, exception: Exception = None, service_name: str = None) -> ApiErrorInfo:
        details = {"service": service_name} if service_name else {}
        upstream_status = getattr(exception, "status_code", None)
        if upstream_status:
            details["upstream_status"] = upstream_status
        return ApiErrorInfo(
            error_type=ErrorType.EXTERNAL_ERROR,
            message=message,
            user_message="관광 정보를 불러오는 중 문제가 발생했습니다. 잠시 후 다시 시도해주세요.",
            status_code=status.HTTP_502_BAD_GATEWAY,
            retryable=True,
            details=details,
            original_exception=exception,
        )

    @staticmethod
    def from_exception(exception: Exception) -> ApiErrorInfo:
        """예외에서 에러 객체 생성"""
        message = getattr(exception, "message", None) or str(exception)

        if isinstance(exception, TourApiNotFoundError):
            return ErrorFactory.create_not_found_error(message, exception)
        if isinstance(exception, TourApiValidationError):
            return ErrorFactory.create_validation_error(message, exception)
        if isinstance(exception, TourApiRateLimitError):
            return ApiErrorInfo(
                error_type=ErrorType.RATE_LIMITED,
                message=message,
                user_message="요청이 많아 잠시 후 다시 시도해주세요.",
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                retryable=True,
                original_exception=exception,
            )
        if isinstance(exception, TourApiConfigError):
            return ApiErrorInfo(
                error_type=ErrorType.SYSTEM_ERROR,
                message=message,
                user_message="서비스 설정에 문제가 있습니다. 관리자에게 문의해주세요.",
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                original_exception=exception,
            )
        if isinstance(exception, (TourApiError, StatsError)):
            return ErrorFactory.create_external_error(message, exception, service_name="tour_api")
        if isinstance(exception, AuthenticationRequiredError):
            return ApiErrorInfo(
                error_type=ErrorType.USER_ERROR,
                message=message,
                user_message=message,
                status_code=status.HTTP_401_UNAUTHORIZED,
                original_exception=exception,
            )
        if isinstance(exception, BookmarkOperationError):
            return ApiErrorInfo(
                error_type=ErrorType.SYSTEM_ERROR,
                message=message,
                user_message=message,
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                retryable=True,
                original_exception=exception,
            )

        return ApiErrorInfo(
            error_type=ErrorType.SYSTEM_ERROR,
            message=message,
            user_message="시스템에 일시적인 문제가 발생했습니다. 잠시 후 다시 시도해주세요.",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            retryable=True,
            original_exception=exception,
        )


class ErrorHandler:
    """중앙화된 에러 처리기"""

    def __init__(self, logger: logging.Logger = None):
        self.logger = logger or logging.getLogger(__name__)

    def handle_error(self, error: ApiErrorInfo, context: Dict[str, Any] = None) -> JSONResponse:
        """에러 로깅 및 응답 생성"""
        self._log_error(error, context)

        body = {
            "success": False,
            "error_type": error.error_type.value,
            "message": error.user_message,
            "detail": error.message,
            "retryable": error.retryable,
        }
        if error.details:
            body["details"] = error.details

        return JSONResponse(status_code=error.status_code, content=body)

    def _log_error(self, error: ApiErrorInfo, context: Dict[str, Any] = None):
        """에러 타입별 로그 레벨"""
        log_data = {
            "error_type": error.error_type.value,
            "details": error.details,
            "path": context.get("path") if context else None,
        }

        if error.error_type == ErrorType.SYSTEM_ERROR:
            self.logger.error(f"System error: {error.message}", extra=log_data, exc_info=error.original_exception)
        elif error.error_type in (ErrorType.EXTERNAL_ERROR, ErrorType.RATE_LIMITED):
            self.logger.warning(f"External service error: {error.message}", extra=log_data)
        else:
            self.logger.info(f"{error.error_type.value}: {error.message}", extra=log_data)


# 전역 에러 핸들러 인스턴스
_global_error_handler: ErrorHandler = None


def get_error_handler() -> ErrorHandler:
    """전역 에러 핸들러 조회"""
    global _global_error_handler
    if _global_error_handler is None:
        _global_error_handler = ErrorHandler()
    return _global_error_handler


def set_error_handler(handler: ErrorHandler):
    """전역 에러 핸들러 설정"""
    global _global_error_handler
    _global_error_handler = handler


async def api_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """FastAPI 예외 핸들러"""
    error = ErrorFactory.from_exception(exc)
    return get_error_handler().handle_error(error, {"path": request.url.path})


def register_exception_handlers(app):
    for exc_class in (TourApiError, StatsError, BookmarkError):
        app.add_exception_handler(exc_class, api_exception_handler)
