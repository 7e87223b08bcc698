"""
WatchSync Backend - FastAPI Application

Progress store consumed by the watch-progress tracker:
- /api/v1/enrollments (enrollments, topic progress)
- /api/v1/exams (exam availability)
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1 import router as api_v1_router
from app.core.config import settings
from app.core.database import close_db, init_db
from app.core.http_client import close_http_client


logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Set up logging and tables on startup, release pools on shutdown."""
    configure_logging()
    logger.info(f"Starting WatchSync progress store ({settings.ENVIRONMENT})")
    if settings.is_development:
        await init_db()

    yield

    logger.info("Shutting down WatchSync progress store")
    await close_http_client()
    await close_db()


app = FastAPI(
    title="WatchSync Backend",
    description="Progress store for stream enrollments, topic watch progress and exam eligibility.",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/health", tags=["Health"])
async def health_check() -> dict:
    """
    Liveness probe.

    Returns:
        dict: Status, environment and API version.
    """
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "version": API_VERSION,
    }


@app.get("/", tags=["Root"])
async def root() -> dict:
    return {
        "message": "WatchSync progress store",
        "docs": "/docs",
        "health": "/health",
    }
