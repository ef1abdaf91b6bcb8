"""Translate exceptions into the JSON error shape clients see."""

import traceback
from typing import Any, Dict

import structlog
from bson.errors import InvalidId
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from jobboard.config import Settings
from jobboard.core.exceptions import AppError

logger = structlog.get_logger(__name__)

_VALUE_ERROR_PREFIX = "Value error, "


def error_body(status_str: str, code: str, message: str) -> Dict[str, Any]:
    return {"status": status_str, "code": code, "message": message}


def _fail(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_body("fail", code, message))


def _validation_message(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        msg = str(error.get("msg", "Invalid value"))
        if msg.startswith(_VALUE_ERROR_PREFIX):
            msg = msg[len(_VALUE_ERROR_PREFIX):]
        field = ".".join(str(part) for part in error.get("loc", ())[1:])
        messages.append(f"{field}: {msg}" if field else msg)
    return ". ".join(messages) or "Invalid request"


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Install the error translator on ``app``."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.status, exc.code, exc.message),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return _fail(status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", _validation_message(exc))

    @app.exception_handler(DuplicateKeyError)
    async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
        key_value = (exc.details or {}).get("keyValue") or {}
        field = next(iter(key_value), "field")
        return _fail(
            status.HTTP_400_BAD_REQUEST,
            "DUPLICATE_VALUE",
            f"Duplicate value for {field}. Please use another value.",
        )

    @app.exception_handler(InvalidId)
    async def invalid_id_handler(request: Request, exc: InvalidId):
        return _fail(status.HTTP_400_BAD_REQUEST, "INVALID_ID", "Invalid ID format")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
        status_str = "fail" if exc.status_code < 500 else "error"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(status_str, code, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled_exception", path=request.url.path, method=request.method)
        content = error_body("error", "INTERNAL_ERROR", "Something went wrong!")
        if settings.is_development:
            content.update(
                {
                    "message": str(exc),
                    "error": type(exc).__name__,
                    "stack": traceback.format_exception(type(exc), exc, exc.__traceback__),
                }
            )
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)
