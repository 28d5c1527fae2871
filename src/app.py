"""Fulfillment service FastAPI application.

Single-domain web server: every /fulfillments request runs inside the
fulfillment domain context so repositories resolve against the configured
providers.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# Initialized at module level so uvicorn workers share it. PROTEAN_ENV
# selects the configuration overlay.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fulfillment.domain import fulfillment  # noqa: E402

fulfillment.init()

_DOMAIN_PREFIXES = ("/fulfillments",)


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Fulfillment API",
    description="Post-payment order fulfillment for the delivery storefront",
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
    """Push the fulfillment domain context for domain routes."""
    if request.url.path.startswith(_DOMAIN_PREFIXES):
        with fulfillment.domain_context():
            response = await call_next(request)
        return response
    # Health check, docs
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from fulfillment.api.routes import fulfillment_router  # noqa: E402

app.include_router(fulfillment_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": {"name": fulfillment.name}})
