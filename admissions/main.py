"""
Event Admissions API - Main Application Entry Point

Admission control for event participation:
- Join requests counted against per-role slot pools
- Admin approve / reject / remove with a permanent rejection ledger
- Post-commit notification fan-out (email + in-app) on a worker pool
- Redis caching of listings with invalidation on every transition
- Structured logging with request correlation, Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from admissions.core.config import get_settings
from admissions.core.exceptions import AdmissionError
from admissions.core.logging import setup_logging, get_logger
from admissions.core.metrics import metrics_endpoint
from admissions.api.router import api_router
from admissions.api.middleware import RequestLoggingMiddleware
from admissions.api.exception_handlers import admission_error_handler, validation_error_handler
from admissions.services.cache_service import get_redis, close_redis, get_cache_stats
from admissions.services.notification_dispatcher import get_dispatcher

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        enforce_capacity=settings.ENFORCE_CAPACITY,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    dispatcher = get_dispatcher()
    await dispatcher.start()

    yield

    # Flush pending notices before the connections go away
    await dispatcher.stop()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Admission control for event participation with per-role capacity",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)
app.add_exception_handler(AdmissionError, admission_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    dispatcher = get_dispatcher()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
        "notifications": {"running": dispatcher.running, "queued": dispatcher.pending},
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
