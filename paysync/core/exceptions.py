from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse


class AppError(Exception):
    """Base application error with consistent schema."""

    def __init__(
        self,
        message: str,
        code: str = "ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, code="UNAUTHORIZED", status_code=status.HTTP_401_UNAUTHORIZED)


class BadRequestError(AppError):
    def __init__(self, message: str = "Bad request", details: dict[str, Any] | None = None):
        super().__init__(message, code="BAD_REQUEST", status_code=status.HTTP_400_BAD_REQUEST, details=details)


class ConfigurationError(AppError):
    """Required configuration (e.g. gateway credentials) is missing."""

    def __init__(self, message: str = "Service not configured"):
        super().__init__(message, code="CONFIGURATION_ERROR", status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


class GatewayError(AppError):
    """Base for normalized payment gateway failures."""

    def __init__(
        self,
        message: str,
        code: str = "GATEWAY_ERROR",
        status_code: int = status.HTTP_502_BAD_GATEWAY,
        order_id: str | None = None,
    ):
        self.order_id = order_id
        super().__init__(
            message,
            code=code,
            status_code=status_code,
            details={"order_id": order_id} if order_id else None,
        )


class GatewayNotFoundError(GatewayError):
    def __init__(self, message: str = "Order not found at gateway", order_id: str | None = None):
        super().__init__(message, code="GATEWAY_NOT_FOUND", status_code=status.HTTP_404_NOT_FOUND, order_id=order_id)


class GatewayRequestError(GatewayError):
    def __init__(self, message: str = "Gateway rejected the request", order_id: str | None = None):
        super().__init__(message, code="GATEWAY_BAD_REQUEST", status_code=status.HTTP_400_BAD_REQUEST, order_id=order_id)


class GatewayTransientError(GatewayError):
    """Network failure or 5xx from the gateway; safe to retry on a later run."""

    def __init__(self, message: str = "Gateway unavailable", order_id: str | None = None):
        super().__init__(message, code="GATEWAY_UNAVAILABLE", status_code=status.HTTP_502_BAD_GATEWAY, order_id=order_id)


class UserNotResolvedError(AppError):
    def __init__(self, order_id: str):
        super().__init__(
            f"No user found for order {order_id}",
            code="USER_NOT_RESOLVED",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"order_id": order_id},
        )


class ActivationError(AppError):
    """Writing the activation to the user store failed."""

    def __init__(self, message: str, order_id: str | None = None):
        super().__init__(
            message,
            code="ACTIVATION_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"order_id": order_id} if order_id else None,
        )


def error_response(request: Request, exc: AppError) -> ORJSONResponse:
    body = {
        "error": {
            "message": exc.message,
            "code": exc.code,
            "details": exc.details,
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(status_code=exc.status_code, content=body)


async def app_exception_handler(request: Request, exc: AppError) -> ORJSONResponse:
    return error_response(request, exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    body = {
        "error": {
            "message": "Validation error",
            "code": "VALIDATION_ERROR",
            "details": {"errors": exc.errors()},
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=body,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    from paysync.core.logging import get_logger
    get_logger(__name__).exception("unhandled_exception", exc_info=exc)
    body = {
        "error": {
            "message": "Internal server error",
            "code": "INTERNAL_ERROR",
            "details": {},
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body,
    )
