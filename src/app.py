"""Shopping cart FastAPI application.

Processes cart commands synchronously via HTTP. Each request is wrapped in
the shopping domain's context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay from shopping/domain.toml:
#   - unset        → in-memory database
#   - "production" → SQLite through SQLAlchemy
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from shopping.domain import shopping  # noqa: E402
from shopping.utils.logging import configure_logging  # noqa: E402

configure_logging()
shopping.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Shopping Cart API",
    description="Marketplace shopping carts — items, pricing, checkout and cart lifecycle",
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
    """Push the shopping domain context for each request."""
    with shopping.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from shopping.api.errors import install_error_handlers  # noqa: E402
from shopping.api.routes import admin_router, cart_router  # noqa: E402

app.include_router(cart_router)
app.include_router(admin_router)
install_error_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": shopping.name})
