"""Map engine failures onto HTTP responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from grocery.shared.errors import (
    AlreadyRated,
    CancellationWindowExpired,
    ConcurrentUpdate,
    GroceryError,
    InsufficientStock,
    InvalidTransition,
    OrderAlreadyClaimed,
    StockContention,
    UnauthorizedActor,
    ValidationFailure,
)

logger = structlog.get_logger(__name__)

STATUS_CODES = {
    ValidationFailure: 400,
    UnauthorizedActor: 403,
    InsufficientStock: 409,
    OrderAlreadyClaimed: 409,
    InvalidTransition: 409,
    CancellationWindowExpired: 409,
    AlreadyRated: 409,
    StockContention: 409,
    ConcurrentUpdate: 409,
}


async def grocery_error_handler(request: Request, exc: GroceryError) -> JSONResponse:
    status_code = STATUS_CODES.get(type(exc), 400)
    logger.info("request_refused", path=request.url.path, error=exc.kind, status_code=status_code)
    return JSONResponse(status_code=status_code, content={"error": exc.kind, "messages": exc.messages})


def install_error_handlers(app: FastAPI) -> None:
    """Protean's handlers for its own exceptions, plus the engine's typed failures."""
    register_exception_handlers(app)
    app.add_exception_handler(GroceryError, grocery_error_handler)
