"""
Open Day Registration API - Main Application Entry Point

Capacity-constrained booking of activity time slots:
- Canonical slot keys resolved once at the request boundary
- Per-activity locks plus row locks so no activity is ever overbooked
- Advisory capacity cache (in-process or Redis) for availability pages
- Counter reconciliation against the reservation ledger
"""

import asyncio
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from openday.core.config import get_settings
from openday.core.logging import setup_logging, get_logger
from openday.core.metrics import metrics_endpoint
from openday.api.router import api_router
from openday.api.middleware import RequestLoggingMiddleware
from openday.db.session import create_engine, create_session_factory
from openday.services.engine import build_engine
from openday.services.strategy_factory import build_cache_backend

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: build the engine on startup, tear it down on shutdown."""
    setup_logging(settings)
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        preserve_variants=settings.PRESERVE_VARIANTS,
    )

    db_engine = create_engine(settings)
    cache_backend = await build_cache_backend(settings)
    engine = build_engine(settings, create_session_factory(db_engine), cache_backend)
    app.state.engine = engine

    reconcile_task = None
    if settings.RECONCILIATION_INTERVAL_SECONDS > 0:
        reconcile_task = asyncio.create_task(
            engine.reconciliation.run_periodically(settings.RECONCILIATION_INTERVAL_SECONDS)
        )
        logger.info("reconciliation_scheduled", interval=settings.RECONCILIATION_INTERVAL_SECONDS)

    yield

    # Cleanup
    if reconcile_task is not None:
        reconcile_task.cancel()
        with suppress(asyncio.CancelledError):
            await reconcile_task
    await engine.close()
    await db_engine.dispose()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Open day activity registration with capacity-safe reservations",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)

# Routes
app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    engine = getattr(app.state, "engine", None)
    cache_stats = await engine.cache.stats() if engine is not None else {"status": "not_initialised"}
    return {
        "status": "healthy" if engine is not None else "starting",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
