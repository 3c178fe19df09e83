"""FastAPI Application Entry Point.

Configures the app, lifespan (database + document store), CORS, and
includes all route modules.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flowengine.config import CORS_ORIGINS
from flowengine.logging_config import get_api_logger

# Ensure node types are registered (and the registry frozen) at import time
import flowengine.nodes  # noqa: F401

from .database import close_db, init_db
from .dependencies import close_document_store, init_document_store

logger = get_api_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage database and document store lifecycle."""
    await init_db()
    # A failed ping aborts startup; there is no reconnect loop
    await init_document_store()
    logger.info("Workflow engine is running")
    yield
    await close_document_store()
    await close_db()


app = FastAPI(title="Workflow Execution Engine API", version="1.0.0", lifespan=lifespan)

# CORS configuration, comma-separated origins ("*" allows any editor origin)
_origins = [o.strip() for o in CORS_ORIGINS.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    # Credentials cannot be combined with a wildcard origin
    allow_credentials="*" not in _origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
from .routes.workflows import router as workflows_router  # noqa: E402
from .routes.execution import router as execution_router  # noqa: E402
from .routes.runs import router as runs_router  # noqa: E402
from .routes.validation import router as validation_router  # noqa: E402

app.include_router(workflows_router)
app.include_router(execution_router)
app.include_router(runs_router)
app.include_router(validation_router)


@app.get("/health")
async def health_check():
    """Health check endpoint for container orchestration."""
    return {"status": "healthy", "message": "Workflow engine is running"}
