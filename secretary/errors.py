"""Error taxonomy shared by the store, services and routes.

Every error maps to one HTTP status and renders as the JSON envelope
``{"success": false, "error": "..."}``. Messages are written for clients;
internal details go to the log only.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra: Dict[str, Any] = extra
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource already exists"


class RateLimitedError(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many requests. Please try again later."


class ReauthorizationRequired(AppError):
    """Third-party authorization is missing or no longer usable."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Calendar authorization expired. Please re-authorize."

    def __init__(self, message: Optional[str] = None, **extra: Any) -> None:
        extra.setdefault("needsAuth", True)
        super().__init__(message, **extra)


class CalendarNotConnected(ReauthorizationRequired):
    default_message = "Calendar not connected. Please authorize calendar access."


class ExternalServiceError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "External service request failed"


class InternalError(AppError):
    pass


def error_payload(message: str, **extra: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"success": False, "error": message}
    payload.update(extra)
    return payload


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


async def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    log = logger.bind(tag="http.error", path=request.url.path, status=exc.status_code)
    if exc.status_code >= 500:
        log.error(exc.message)
    else:
        log.info(exc.message)
    return JSONResponse(error_payload(exc.message, **exc.extra), status_code=exc.status_code)


async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(error_payload(message), status_code=exc.status_code, headers=exc.headers)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(error_payload(_validation_message(exc)), status_code=status.HTTP_400_BAD_REQUEST)


async def _unhandled_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.bind(tag="http.error", path=request.url.path).exception("unhandled server error")
    return JSONResponse(error_payload("Internal server error"), status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, _app_error_handler)
    app.add_exception_handler(HTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_handler)
