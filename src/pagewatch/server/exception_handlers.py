from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from pagewatch.main.exceptions import EXCEPTION_MAP, ErrorCodes
from pagewatch.main.logging import get_logger
from pagewatch.main.models import GeneralError

logger = get_logger(__name__)


def _error_response(status_code: int, message: str, error_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=GeneralError(message=message, pagewatch_error_code=error_code).model_dump(),
    )


def _mapped_handler(status_code: int, error_message: str | None, error_code: int):
    def handler(request: Request, exc: Exception) -> JSONResponse:
        if status_code == 401:
            logger.info(
                f"Unauthorized {request.method} {request.url.path}: {exc}",
                extra={
                    "path": request.url.path,
                    "error_code": error_code,
                    "client_host": request.client.host if request.client else "unknown",
                },
            )
        elif status_code >= 500:
            logger.error(
                f"{request.method} {request.url.path} failed: {exc}",
                extra={"path": request.url.path, "error_code": error_code},
            )

        return _error_response(status_code, error_message or str(exc), error_code)

    return handler


def add_exception_handlers(app: FastAPI):
    for exception, (status_code, error_message, error_code) in EXCEPTION_MAP.items():
        app.add_exception_handler(
            exception, _mapped_handler(status_code, error_message, error_code)
        )

    def store_unavailable(request: Request, exc: RedisError) -> JSONResponse:
        logger.error(
            f"Store unavailable: {request.method} {request.url.path}",
            extra={"error": str(exc)},
        )
        return _error_response(503, "Store unavailable", ErrorCodes.STORE_ERROR)

    app.add_exception_handler(RedisError, store_unavailable)
