"""Storefront checkout FastAPI application.

Checkout requests are wrapped in the checkout domain context so command
handlers and repositories resolve through ``current_domain``.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay (memory providers unless configured).
from checkout.domain import checkout  # noqa: E402
from checkout.utils.logging import add_context, clear_context, configure_logging  # noqa: E402
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

configure_logging()
checkout.init()

_ROUTE_DOMAIN_MAP = {
    "/checkout": checkout,
}


def _resolve_domain(path: str):
    """Return the domain for the given request path, or None."""
    for prefix, domain in _ROUTE_DOMAIN_MAP.items():
        if path.startswith(prefix):
            return domain
    return None


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Storefront Checkout API",
    description="Checkout orchestration across commerce engine, payment gateway and carrier",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the checkout domain context for checkout requests."""
    domain = _resolve_domain(request.url.path)
    if domain is not None:
        add_context(method=request.method, path=request.url.path)
        try:
            with domain.domain_context():
                response = await call_next(request)
        finally:
            clear_context()
        return response
    # No domain match: health check, docs
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from checkout.api import register_exception_handlers  # noqa: E402
from checkout.api import router as checkout_router  # noqa: E402

app.include_router(checkout_router)
register_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    from checkout.settings import get_settings

    settings = get_settings()
    return JSONResponse(
        content={
            "status": "ok",
            "domains": {"checkout": {"name": checkout.name}},
            "adapters": {
                "commerce": settings.commerce_adapter,
                "payment_gateway": settings.payment_gateway,
                "carrier": settings.carrier_adapter,
            },
        }
    )
