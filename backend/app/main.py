"""
Community Forum Realtime Backend.

FastAPI application serving live forum events, presence
and typing indicators.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from loguru import logger

from app.api.v1 import router as api_v1_router
from app.core.config import settings
from app.modules.realtime import RealtimeService


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info("Starting forum realtime backend...")

    realtime = RealtimeService(settings)
    realtime.start()
    app.state.realtime = realtime

    logger.info("Forum realtime backend started successfully")

    yield

    # Shutdown
    logger.info("Shutting down forum realtime backend...")

    # Closes open streams and cancels sweep/typing timers
    realtime.stop()

    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Community Forum Realtime Platform

    ## Features

    - **Live Events**: Server-Sent Events stream per channel
    - **Presence**: Who is online in a topic or category
    - **Typing**: Typing indicators for topic replies

    ## Documentation

    - [API Docs](/docs) - Interactive Swagger UI
    - [ReDoc](/redoc) - Alternative documentation
    """,
    openapi_url=f"{settings.api_v1_prefix}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_v1_router, prefix=settings.api_v1_prefix)


@app.get("/health", tags=["System"])
async def health_check() -> dict:
    """Health check endpoint for monitoring."""
    realtime: RealtimeService = app.state.realtime
    return {
        "status": "healthy",
        "version": settings.app_version,
        "streams": realtime.stream_count,
        "channels": realtime.store.channel_count(),
    }


@app.get("/", tags=["System"])
async def root() -> dict:
    """Root endpoint with API information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "api": settings.api_v1_prefix,
    }
