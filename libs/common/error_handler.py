"""Global exception handlers for consistent error responses.

Usage:
    from libs.common.error_handler import add_exception_handlers

    app = FastAPI()
    add_exception_handlers(app)
"""

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from libs.common.errors import SchedulingConflict, ServiceError
from libs.common.logging import get_logger

logger = get_logger(__name__)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    content = {"detail": exc.message, "code": exc.code}
    if exc.details:
        content["details"] = exc.details
    if isinstance(exc, SchedulingConflict):
        content["conflicts"] = exc.conflicts

    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info(
            "%s %s rejected (%s): %s",
            request.method,
            request.url.path,
            exc.code,
            exc.message,
        )
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(content))


def add_exception_handlers(app: FastAPI) -> None:
    """Register handlers that turn service errors into JSON responses."""
    app.add_exception_handler(ServiceError, service_error_handler)
