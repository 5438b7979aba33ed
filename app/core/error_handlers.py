import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.utils.response import error_response

logger = structlog.get_logger()

DEFAULT_ERROR_MESSAGE = "Error en la solicitud"


def _split_detail(detail):
    """Return (message, errors, data) for any HTTPException detail shape."""
    if isinstance(detail, str):
        return detail, [], None
    if isinstance(detail, dict):
        return (
            detail.get("message", DEFAULT_ERROR_MESSAGE),
            detail.get("errors", []),
            detail.get("data"),
        )
    if isinstance(detail, list):
        return DEFAULT_ERROR_MESSAGE, detail, None
    return DEFAULT_ERROR_MESSAGE, [], None


async def http_error(request: Request, exc: StarletteHTTPException):
    message, errors, data = _split_detail(exc.detail)
    response = error_response(exc.status_code, message, errors=errors, data=data)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_error(request: Request, exc: RequestValidationError):
    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Datos inválidos",
        errors=exc.errors(),
    )


async def rate_limited(request: Request, exc: RateLimitExceeded):
    logger.warning("rate_limit_exceeded", path=request.url.path, limit=str(exc.detail))
    return error_response(
        status.HTTP_429_TOO_MANY_REQUESTS,
        "Demasiadas solicitudes. Intenta de nuevo más tarde.",
    )


async def unhandled_error(request: Request, exc: Exception):
    logger.exception(
        "unhandled_exception",
        path=request.url.path,
        error_type=type(exc).__name__,
        detail=str(exc),
    )
    if settings.DEBUG and settings.ENVIRONMENT != "production":
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            f"Error en el servidor: {exc}",
            errors=[{"type": type(exc).__name__}],
        )
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Error en el servidor")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RateLimitExceeded, rate_limited)
    app.add_exception_handler(StarletteHTTPException, http_error)
    app.add_exception_handler(RequestValidationError, validation_error)
    app.add_exception_handler(Exception, unhandled_error)
