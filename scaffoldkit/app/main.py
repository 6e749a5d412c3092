"""
FastAPI application entry point.

Run:
- development: uvicorn scaffoldkit.app.main:app --reload
- production:  uvicorn scaffoldkit.app.main:app
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from scaffoldkit import __version__
from scaffoldkit.app.routes import templates
from scaffoldkit.config import load_config

logger = logging.getLogger(__name__)


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifecycle.

    Startup: load engine config from default.yaml
    """
    app.state.config = load_config()
    logger.info("Engine config loaded (trusted host: %s)", app.state.config.trusted_host)

    yield


# =============================================================================
# App Instance
# =============================================================================

app = FastAPI(
    title="scaffoldkit",
    description="Template manifest validation and project rendering",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(
    templates.api_router, prefix="/api/templates", tags=["Templates API"]
)


# =============================================================================
# Root Endpoints
# =============================================================================


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check."""
    return {"status": "ok"}


# =============================================================================
# CLI Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "scaffoldkit.app.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
