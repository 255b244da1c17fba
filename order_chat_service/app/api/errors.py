# Maps service exceptions onto the {"success": false, "error": ...} response shape
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from order_chat_service.app.service.exceptions import BaseOrderServiceError, InfrastructureError

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


async def order_service_error_handler(request: Request, exc: BaseOrderServiceError) -> JSONResponse:
    if isinstance(exc, InfrastructureError):
        # Internal detail stays in the logs.
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}", exc_info=exc)
        return error_response(exc.status_code, exc.public_message)
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}", exc_info=exc)
        return error_response(exc.status_code, "Internal server error")
    logger.info(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return error_response(exc.status_code, exc.message)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request"
    logger.info(f"Request validation failed on {request.method} {request.url.path}: {message}")
    return error_response(422, message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unexpected error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return error_response(500, "Internal server error")


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(BaseOrderServiceError, order_service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
