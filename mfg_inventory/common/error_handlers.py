from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from mfg_inventory.common.exceptions import AppError, ConflictError
from mfg_inventory.common.response import ErrorResponse
from mfg_inventory.logger_config import logger


def register_error_handlers(app: FastAPI):
    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, e: AppError):
        logger.info(f"{request.method} {request.url.path} rejected ({e.error}): {e.message}")
        details = None
        if isinstance(e, ConflictError) and e.constraint:
            details = {"constraint": e.constraint}
        return ErrorResponse.send(
            message=e.message,
            status_code=e.status_code,
            error=e.error,
            details=details,
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, e: StarletteHTTPException):
        response = ErrorResponse.send(
            message=str(e.detail),
            status_code=e.status_code,
            error="internal" if e.status_code >= 500 else "http_error",
        )
        if e.headers:
            response.headers.update(e.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, e: RequestValidationError):
        return ErrorResponse.send(
            message="Validation Error",
            status_code=422,
            error="invalid_input",
            details=[
                {k: v for k, v in err.items() if k not in ("ctx", "input")}
                for err in e.errors()
            ],
        )

    @app.exception_handler(Exception)
    async def handle_exception(request: Request, e: Exception):
        # Log the exception with traceback
        logger.exception("Unhandled exception occurred")
        return ErrorResponse.send(
            message="Internal Server Error",
            status_code=500,
            error="internal",
        )
