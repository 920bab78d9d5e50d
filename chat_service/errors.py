"""错误处理 - 统一的结构化错误响应"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ChatServiceError(Exception):
    """应用错误基类，携带 HTTP 状态码和错误码"""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadRequestError(ChatServiceError):
    status_code = 400
    code = "bad_request"


class GenerationFailedError(ChatServiceError):
    status_code = 502
    code = "generation_failed"


class GenerationTimeoutError(ChatServiceError):
    status_code = 504
    code = "generation_timeout"


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


def _describe_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "无效的请求格式" + (f"（{'; '.join(parts)}）" if parts else "")


def register_exception_handlers(app: FastAPI) -> None:
    """注册异常处理器，所有错误都返回 {"error": {"code", "message"}}"""

    @app.exception_handler(ChatServiceError)
    async def handle_service_error(request: Request, exc: ChatServiceError):
        return error_response(exc.status_code, exc.code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return error_response(400, "bad_request", _describe_validation_error(exc))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        code = "bad_request" if exc.status_code < 500 else "internal_error"
        if exc.status_code == 404:
            code = "not_found"
        elif exc.status_code == 405:
            code = "method_not_allowed"
        return error_response(exc.status_code, code, str(exc.detail))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(500, "internal_error", "服务内部错误")
