"""FastAPI server for the Flow Deployer.

Run with:
    uvicorn flow_deployer.server:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from flow_deployer.api.routes import router
from flow_deployer.config import CORS_ORIGINS, SERVER_HOST, SERVER_PORT
from flow_deployer.deployer import FlowDeployer
from flow_deployer.services.flow_store import InMemoryFlowStore
from flow_deployer.services.retell_client import RetellClient

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan: initialise / tear-down shared resources ────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Start-up: create the flow store and deployer once and keep them in
    app state, so routes never race on lazy module-level initialisation.
    """
    client = RetellClient()
    application.state.store = InMemoryFlowStore()
    application.state.deployer = FlowDeployer(application.state.store, client)
    logger.info("Flow deployer ready.")
    yield
    client.close()


# ── FastAPI application ──────────────────────────────────────────────
app = FastAPI(
    title="Flow Deployer",
    description=(
        "Compile conversation flows into agent instructions and tools, "
        "and deploy them to Retell voice agents."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS (needed for the flow editor frontend) ───────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request-ID middleware ────────────────────────────────────────────
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a unique request ID to every request for log correlation.

    The ID is echoed in the ``X-Request-ID`` response header and prefixed
    to every log line the routes write for this request.
    """
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info(
        "[%s] %s %s", request_id, request.method, request.url.path,
    )
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ── Register routes ──────────────────────────────────────────────────
app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "Flow Deployer",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
    }


# ── CLI entry point ──────────────────────────────────────────────────

if __name__ == "__main__":
    logger.info("Starting Flow Deployer API server on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run(
        "flow_deployer.server:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=True,
    )
