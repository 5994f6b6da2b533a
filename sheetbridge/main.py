"""
FastAPI application entry point.

This module initializes the FastAPI application, configures middleware,
and registers all API routers.
"""
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routers import ingest, integrations, uploads
from .core.config import settings
from .core.logging_config import configure_logging
from .domain.delivery.webhook import shutdown_dispatcher
from .domain.integrations.oauth import OAuthStateStore

# Ensure logging is configured before the application starts serving requests.
configure_logging(settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown events."""
    app.state.oauth_states = OAuthStateStore()

    if os.getenv("SKIP_DB_INIT") == "1":
        logger.info("SKIP_DB_INIT=1 detected; skipping database bootstrap during startup")
    else:
        from .db.session import init_db

        try:
            init_db()
        except Exception as e:
            logger.error(f"Failed to initialize database tables: {e}")
            raise  # Re-raise to prevent app from starting with broken database

    yield  # Application runs here

    # Let in-flight webhook dispatches settle their upload status
    shutdown_dispatcher(wait=True)


app = FastAPI(
    title="SheetBridge API",
    version="1.0.0",
    description="Spreadsheet ingestion: map uploaded sheets to canonical records and deliver them downstream",
    lifespan=lifespan,
)

allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
allowed_origins = [origin.strip() for origin in allowed_origins]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ingest.router)
app.include_router(uploads.router)
app.include_router(integrations.router)


@app.get("/")
async def root():
    """Root endpoint returning API information."""
    return {
        "message": "SheetBridge API",
        "version": "1.0.0"
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "service": "sheetbridge-api"
    }
