"""Grocery engine FastAPI application.

Processes commands synchronously over HTTP. Every request runs inside the
grocery domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from grocery.domain import grocery
from grocery.utils.logging import add_context, clear_context

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay applied by protean.
grocery.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="FreshCart Order Engine",
    description="Order lifecycle and inventory transactions for the grocery platform",
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
    """Push the grocery domain context and tag log events with a request id."""
    clear_context()
    add_context(request_id=request.headers.get("x-request-id", uuid.uuid4().hex))
    with grocery.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from grocery.api import ROUTERS, install_error_handlers  # noqa: E402

for router in ROUTERS:
    app.include_router(router)

install_error_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": grocery.name})
