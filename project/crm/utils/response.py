# crm/utils/response.py

"""
Единый формат ответов API:
- успех:  {"success": true, "data": ..., "meta": ...}
- ошибка: {"success": false, "error": {"code", "message", "details"}}
"""

from typing import Any, Optional

from fastapi import HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from crm.config import settings


class ApiError(HTTPException):
    """HTTPException с машинным кодом ошибки (EMAIL_EXISTS, INVALID_TOKEN, ...)."""

    def __init__(self, status_code: int, code: str, message: str, details: Any = None):
        super().__init__(status_code=status_code, detail=message)
        self.code = code
        self.message = message
        self.details = details


STATUS_CODES = {
    status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


def success_response(data: Any, status_code: int = status.HTTP_200_OK, meta: Optional[dict] = None) -> JSONResponse:
    body = {"success": True, "data": jsonable_encoder(data)}
    if meta:
        body["meta"] = meta
    return JSONResponse(body, status_code=status_code)


def error_response(
    code: str,
    message: str,
    status_code: int = status.HTTP_400_BAD_REQUEST,
    details: Any = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    error = {"code": code, "message": message}
    if details is not None:
        error["details"] = jsonable_encoder(details)
    return JSONResponse({"success": False, "error": error}, status_code=status_code, headers=headers)


# ────────────── Обработчики исключений ──────────────
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if isinstance(exc, ApiError):
        return error_response(exc.code, exc.message, exc.status_code, exc.details, exc.headers)

    code = STATUS_CODES.get(exc.status_code, "HTTP_ERROR")
    return error_response(code, str(exc.detail), exc.status_code, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
        for e in exc.errors()
    ]
    return error_response("VALIDATION_ERROR", "Invalid input data", status.HTTP_400_BAD_REQUEST, errors)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log = getattr(request.app.state, "log", None)
    if log:
        await log.log_error("app", f"Необработанная ошибка: {exc!r}", {"path": request.url.path})

    message = "An unexpected error occurred" if settings.is_production else str(exc)
    return error_response("INTERNAL_SERVER_ERROR", message, status.HTTP_500_INTERNAL_SERVER_ERROR)
