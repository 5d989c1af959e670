"""Application factory and CLI entry point.

``create_app()`` builds the FastAPI application with:
  - Gating, versioning, and response services on ``app.state``
  - Lifespan handler that loads the form catalog once
  - CORS middleware
  - Global exception handlers (FormsError → its status, ValueError → 404/409/400)
  - All API routes mounted under ``/api/v1``
  - A ``/health`` endpoint for readiness probes

The ``cli()`` function is the ``registry-server`` console-script entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from registry_db.engine import dispose_engine, get_engine
from registry_forms.catalog import FormCatalogStore
from registry_forms.errors import FormsError
from registry_forms.gating import ModuleGatingResolver
from registry_forms.responses import FormResponseService
from registry_forms.versioning import FormVersionResolver

from registry_server.config import ServerSettings, load_settings
from registry_server.errors import (
    forms_error_handler,
    generic_error_handler,
    key_error_handler,
    value_error_handler,
)
from registry_server.routes import register_routes

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Lifespan: runs once at startup/shutdown
# ------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Load the form catalog at startup; dispose the DB pool on shutdown."""
    settings: ServerSettings = app.state.settings

    catalog = FormCatalogStore(forms_dir=settings.forms_dir)
    catalog.load()
    app.state.catalog = catalog

    yield

    # --- Shutdown ---
    await dispose_engine()


# ------------------------------------------------------------------
# Factory
# ------------------------------------------------------------------

def create_app(settings: ServerSettings | None = None) -> FastAPI:
    """Build and return the configured FastAPI application."""
    if settings is None:
        settings = load_settings()

    # --- Configure logging ---
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Registry Forms API Server",
        description="REST API for registry consent, module gating, and form responses",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Stateless services; the catalog is loaded by the lifespan handler
    app.state.settings = settings
    app.state.gating = ModuleGatingResolver(
        registry_external_id=settings.registry_external_id
    )
    app.state.versions = FormVersionResolver()
    app.state.responses = FormResponseService(
        registry_external_id=settings.registry_external_id
    )

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Exception handlers ---
    app.add_exception_handler(FormsError, forms_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(KeyError, key_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    # --- Health check (outside /api/v1 prefix) ---
    @app.get("/health")
    async def health() -> dict:
        """Readiness probe — verifies DB connectivity."""
        try:
            engine = get_engine()
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"status": "ok"}
        except Exception as exc:
            logger.error("Health check failed: %s", exc)
            return {"status": "error", "detail": "database unavailable"}

    # --- Mount all API routes ---
    register_routes(app)

    return app


# ------------------------------------------------------------------
# Module-level ASGI export (for uvicorn registry_server.app:app)
# ------------------------------------------------------------------
app = create_app()


# ------------------------------------------------------------------
# CLI entry point
# ------------------------------------------------------------------

def cli() -> None:
    """Console-script entry point: ``registry-server``."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "registry_server.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
