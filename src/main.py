"""Beacon API - SEO analysis engine."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from analyzers import validate_registry
from api.routes import analyze_router, health_router, tools_router
from config import settings
from engine.fetcher import build_client

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Code before `yield` runs on startup.
    Code after `yield` runs on shutdown.
    """
    # Fail fast if any catalog entry lacks a usable analyzer
    validate_registry()
    app.state.http_client = build_client(settings)
    logger.info(f"Starting {settings.app_name}...")
    yield
    await app.state.http_client.aclose()
    logger.info(f"Shutting down {settings.app_name}...")


app = FastAPI(
    title="Beacon API",
    description="SEO analysis engine: meta tags, links, keywords, sitemaps, structured data and more.",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)

# Configure CORS (adjust origins for production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(health_router, prefix="/api/v1")
app.include_router(tools_router, prefix="/api/v1")
app.include_router(analyze_router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
async def root():
    """Service index."""
    return {
        "service": "Beacon API",
        "docs": "/docs",
        "health": "/api/v1/health",
        "tools": "/api/v1/tools",
    }
