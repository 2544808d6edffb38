"""Exception handlers mapping checkout failures to JSON responses.

Every error body has the shape ``{"error": str, "details": ..., "step"?: str}``.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ValidationError

from checkout.errors import CheckoutError

logger = structlog.get_logger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Register checkout exception handlers with the FastAPI application."""

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        logger.info("Checkout request rejected", path=request.url.path, errors=exc.messages)
        return JSONResponse(
            status_code=400,
            content={"error": "Validation failed", "details": exc.messages},
        )

    @app.exception_handler(CheckoutError)
    async def checkout_error_handler(request: Request, exc: CheckoutError) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "Checkout request failed",
            path=request.url.path,
            error=exc.message,
            step=exc.step,
            status_code=exc.status_code,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
