from __future__ import annotations


class ApiError(Exception):
    def __init__(
        self,
        *,
        code: str,
        message: str,
        error_class: str,
        retryable: bool,
        http_status: int,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.error_class = error_class
        self.retryable = retryable
        self.http_status = http_status


def unauthenticated(message: str = "authentication required") -> ApiError:
    return ApiError(
        code="AUTH_UNAUTHORIZED",
        message=message,
        error_class="security_sensitive",
        retryable=False,
        http_status=401,
    )


def forbidden(message: str) -> ApiError:
    return ApiError(
        code="AUTH_FORBIDDEN",
        message=message,
        error_class="security_sensitive",
        retryable=False,
        http_status=403,
    )


def not_found(code: str, message: str) -> ApiError:
    return ApiError(
        code=code,
        message=message,
        error_class="validation",
        retryable=False,
        http_status=404,
    )


def already_exists(code: str, message: str) -> ApiError:
    return ApiError(
        code=code,
        message=message,
        error_class="informational",
        retryable=False,
        http_status=409,
    )


def invalid_state(message: str, *, code: str = "REQUEST_STATE_INVALID") -> ApiError:
    return ApiError(
        code=code,
        message=message,
        error_class="business_rule",
        retryable=False,
        http_status=409,
    )


def validation_failed(message: str, *, code: str = "REQ_VALIDATION_FAILED") -> ApiError:
    return ApiError(
        code=code,
        message=message,
        error_class="validation",
        retryable=False,
        http_status=400,
    )


def internal_error(message: str = "internal error") -> ApiError:
    return ApiError(
        code="INTERNAL_ERROR",
        message=message,
        error_class="internal",
        retryable=False,
        http_status=500,
    )
