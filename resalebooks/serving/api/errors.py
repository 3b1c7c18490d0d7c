"""
Translate domain errors into HTTP responses.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import structlog

from resalebooks.errors import BooksError, Conflict, InvalidInput, NotFound, StoreUnavailable

logger = structlog.get_logger(__name__)

STATUS_CODES = (
    (InvalidInput, 422),
    (NotFound, 404),
    (Conflict, 409),
    (StoreUnavailable, 503),
)


def status_for(exc: BooksError) -> int:
    for error_type, status_code in STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def books_error_handler(request: Request, exc: BooksError) -> JSONResponse:
    status_code = status_for(exc)
    log = logger.error if status_code >= 500 else logger.info
    log(
        "Request failed",
        path=request.url.path,
        status_code=status_code,
        error=exc.message,
        operation=exc.operation,
        error_type=type(exc).__name__,
    )
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.message, "operation": exc.operation},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BooksError, books_error_handler)
