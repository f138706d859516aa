"""
FastAPI application bootstrap with: \n
- Lifespan-managed creation of the database tables \n
- CORS configured for the frontend \n
- The records router (auth, assets, work orders, inventory, dashboard) \n
- The AI router (upload, transcription, extraction, ingestion, chat, triage) \n
- A health route exposing the dependency-chain cache size \n

Environment contract (from `settings`): \n
- FRONTEND_URL: allowed CORS origin. \n
- DB_*: database the tables are created in. \n

Run with `uvicorn opengmao.main:app`.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from opengmao.api.fast_api import router
from opengmao.api.ai_router import router as ai_router
from opengmao.database.config.config import settings
from opengmao.database.config import connection_engine as engine_module
from opengmao.cache.ttl_cache import get_cache_stats
import opengmao.database.entities  # noqa: F401  registers every table
import logging
from contextlib import asynccontextmanager


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    App lifespan manager.

    Notes
    ------------
    - On startup (before yielding): creates the missing tables.
    - On shutdown (after yielding): disposes of the engine's connection pool.
    """
    print("⚙️  Creating missing tables...")
    engine_module.metadata.create_all(engine_module.connection_engine)
    print("✅ Database ready.")

    try:
        yield
    finally:
        engine_module.connection_engine.dispose()
        print("🛑 App shutting down (connection pool released).")


# Instantiate the FastAPI app with lifespan handler
app = FastAPI(title="OpenGMAO", lifespan=lifespan)
"""Instatiates a FastAPI application object
    The lifespan=lifespan argument registers a custom startup/shutdown lifecycle manager that:\n
        - On startup: creates the database tables if needed.\n
        - On shutdown: releases the connection pool. \n
"""

logger = logging.getLogger("uvicorn")
"""Logger instance for capturing and emitting Uvicorn server logs."""

# -----------------------
# CORS configuration
# -----------------------
url = settings.FRONTEND_URL
"""The allowed frontend origin (URL) used for CORS configuration."""

app.add_middleware(
    CORSMiddleware,
    allow_origins=[url],      # Frontend origin
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------
# API routes
# -----------------------
app.include_router(router)
app.include_router(ai_router)


@app.get("/api/health")
def health():
    """Liveness check; also reports the dependency-chain cache content."""
    return {"status": "ok", "cache": get_cache_stats()}
