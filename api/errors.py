"""
Error taxonomy and the JSON error envelope ``{error, detail?, request_id}``.

Every failure is terminal for the request; nothing here retries.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("intake.api")


class AppError(Exception):
    status_code = 500
    default_error = "Internal Server Error"

    def __init__(self, error: Optional[str] = None, detail: Any = None):
        self.error = error or self.default_error
        self.detail = detail
        super().__init__(self.error)


class ValidationError(AppError):
    status_code = 400
    default_error = "Invalid request"


class NotFoundError(AppError):
    status_code = 404
    default_error = "Not found"


class UnsupportedMediaError(AppError):
    status_code = 415
    default_error = "Unsupported Content-Type"


class InternalError(AppError):
    status_code = 500
    default_error = "Internal Server Error"


def _get_request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def error_response(request: Request, status_code: int, error: str, detail: Any = None) -> JSONResponse:
    request_id = _get_request_id(request)
    payload: dict = {"error": error}
    if detail is not None:
        payload["detail"] = detail
    if request_id:
        payload["request_id"] = request_id

    response = JSONResponse(status_code=status_code, content=payload)
    if request_id:
        response.headers["X-Request-ID"] = request_id
    return response


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(
                "app_error request_id=%s error=%s detail=%s",
                _get_request_id(request),
                exc.error,
                exc.detail,
            )
        return error_response(request, exc.status_code, exc.error, exc.detail)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(request, exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_response(request, 400, "Invalid request", jsonable_errors(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        request_id = _get_request_id(request)
        logger.exception("unhandled_exception request_id=%s", request_id, exc_info=exc)
        return error_response(request, 500, "Internal Server Error", str(exc))


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """Pydantic error dicts may carry exception objects in ``ctx``; keep the readable parts."""
    return [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
        for e in exc.errors()
    ]
