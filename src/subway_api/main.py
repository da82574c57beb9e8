"""FastAPI application entry point."""

from __future__ import annotations

import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from subway_api.config import get_settings
from subway_api.logging import (
    bind_request_context,
    clear_request_context,
    get_logger,
    setup_logging,
)
from subway_api.routers.feeds import router as feeds_router
from subway_api.routers.stations import router as stations_router
from subway_api.services.feeds.aggregator import get_aggregator, reset_aggregator
from subway_api.services.stations.resolver import get_resolver, reset_resolver

logger = get_logger(__name__)

_started_at = time.monotonic()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    setup_logging()
    settings = get_settings()

    # Build the registry, cache and station table up front so config errors surface at boot
    aggregator = get_aggregator()
    resolver = get_resolver()
    logger.info(
        "Starting Subway Feed Aggregator API",
        feeds=aggregator.registry.feed_ids,
        cache_ttl_sec=settings.feed_cache_ttl_sec,
        fetch_timeout_sec=settings.feed_fetch_timeout_sec,
        stations=len(resolver.catalog),
    )

    yield

    reset_aggregator()
    reset_resolver()
    logger.info("Shutting down Subway Feed Aggregator API")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "Merged, partial-failure-tolerant snapshot of the NYC subway "
            "GTFS-Realtime feeds, with station resolution for map placement"
        ),
        lifespan=lifespan,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # Request ID middleware
    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next: Any) -> Any:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        bind_request_context(request_id=request_id, path=request.url.path)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        clear_request_context()
        return response

    app.include_router(feeds_router)
    app.include_router(stations_router)

    @app.get("/health", tags=["meta"])
    async def health_check() -> dict[str, Any]:
        """Health check with per-feed cache status."""
        settings = get_settings()
        aggregator = get_aggregator()
        cache_rows = aggregator.cache.snapshot(aggregator.registry.feed_ids)

        return {
            "service": settings.app_name,
            "status": "OK",
            "version": settings.app_version,
            "environment": settings.environment,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime_sec": round(time.monotonic() - _started_at, 3),
            "feeds": aggregator.registry.feed_ids,
            "cache_status": [
                {
                    "feed_id": row["feed_id"],
                    "cached": row["cached"],
                    "last_update": row["last_update"] or "never",
                }
                for row in cache_rows
            ],
        }

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception", exc_info=exc, path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
            },
        )

    return app


app = create_app()
