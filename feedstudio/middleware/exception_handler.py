"""Exception handler for structured error responses."""

import logging
from fastapi import Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from ..exceptions import FeedStudioError, InvalidRequestError

logger = logging.getLogger(__name__)


async def feedstudio_exception_handler(request: Request, exc: FeedStudioError) -> JSONResponse:
    """
    Log a FeedStudioError and render it as ``{"error", "message", "details"}``.

    Client errors (4xx) are logged at WARNING, everything else at ERROR.
    """
    level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    logger.log(
        level,
        f"{exc.error_code.value}: {exc.message}",
        extra={
            "error_code": exc.error_code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
            "status_code": exc.status_code
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Render a body that is not JSON at all as an ``INVALID_REQUEST_SHAPE`` 400.

    Other request validation errors (path and query parameters) keep
    FastAPI's default 422 response.
    """
    if any(err.get("type") == "json_invalid" for err in exc.errors()):
        error = InvalidRequestError(
            [{"field": "(root)", "message": "Request body is not valid JSON"}],
            shape=True,
        )
        return await feedstudio_exception_handler(request, error)
    return await request_validation_exception_handler(request, exc)
