"""Exception handlers translating domain errors into HTTP responses.

Every error body has the same shape: ``{"error", "message", "retryable"}``.
Details beyond the first message are logged, never returned.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError

from marketplace.errors import MarketplaceError, OrderBusy, first_message

logger = structlog.get_logger(__name__)


def error_body(kind: str, message: str, retryable: bool = False) -> dict:
    return {"error": kind, "message": message, "retryable": retryable}


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    kind = getattr(exc, "kind", "validation_error")
    status_code = getattr(exc, "status_code", 422)
    retryable = getattr(exc, "retryable", False)
    message = first_message(exc)
    logger.info(
        "Request rejected",
        path=request.url.path,
        error=kind,
        messages=getattr(exc, "messages", None),
    )
    return JSONResponse(status_code=status_code, content=error_body(kind, message, retryable))


async def not_found_handler(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    logger.info("Resource not found", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=404, content=error_body("not_found", str(exc) or "Not found"))


async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    headers = None
    if isinstance(exc, OrderBusy):
        headers = {"Retry-After": str(exc.retry_after)}
    logger.warning("Request failed", path=request.url.path, error=exc.kind, message=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.kind, exc.message, exc.retryable),
        headers=headers,
    )


async def version_conflict_handler(request: Request, exc: ExpectedVersionError) -> JSONResponse:
    """Another process saved the order first; the client can retry against the fresh state."""
    logger.warning("Concurrent update rejected", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=OrderBusy.status_code,
        content=error_body(OrderBusy.kind, "The order was changed by another request; retry shortly", True),
        headers={"Retry-After": "1"},
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(ObjectNotFoundError, not_found_handler)
    app.add_exception_handler(ExpectedVersionError, version_conflict_handler)
    app.add_exception_handler(MarketplaceError, marketplace_error_handler)
