"""FastAPI exception handlers for the marketplace error taxonomy.

Usage:
    from libs.common.error_handler import add_exception_handlers

    app = FastAPI()
    add_exception_handlers(app)
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError

from libs.common.errors import Conflict, MarketplaceError
from libs.common.logging import get_logger
from libs.db.session import is_retryable

logger = get_logger(__name__)


async def marketplace_error_handler(
    request: Request, exc: MarketplaceError
) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "%s: %s",
        exc.code,
        exc.message,
        extra={"extra_fields": {"code": exc.code, "status_code": exc.status_code}},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def dbapi_error_handler(request: Request, exc: DBAPIError) -> JSONResponse:
    """Surface serialization failures as a retryable 409."""
    if is_retryable(exc):
        conflict = Conflict("Concurrent update detected, please retry")
        return await marketplace_error_handler(request, conflict)

    logger.exception("Database error on %s", request.url.path)
    return JSONResponse(
        status_code=500, content={"detail": "Internal server error", "code": "db_error"}
    )


def add_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MarketplaceError, marketplace_error_handler)
    app.add_exception_handler(DBAPIError, dbapi_error_handler)
