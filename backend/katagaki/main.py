"""
Katagaki Title Marketplace API - Main Application Entry Point

Users buy one-year rights to use limited-edition titles:
- Stripe Checkout initiation priced from the stored title
- Signature-verified webhooks that grant rights exactly once per session
- Concurrency-safe purchase limits with optimistic locking
- Gap-free official numbering (ktgk_000001, ...) from an atomic sequence row
- Redis caching of the public catalog, structured logging, Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from katagaki.core.config import get_settings
from katagaki.core.errors import KatagakiError
from katagaki.core.logging import setup_logging, get_logger
from katagaki.core.metrics import metrics_endpoint
from katagaki.api.router import api_router
from katagaki.api.middleware import RequestLoggingMiddleware
from katagaki.db.session import dispose_engine
from katagaki.services.cache_service import get_redis, close_redis, get_cache_stats

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        stripe_configured=bool(settings.STRIPE_SECRET_KEY),
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    yield

    await close_redis()
    await dispose_engine()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Limited-edition title marketplace with Stripe-backed annual rights",
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


@app.exception_handler(KatagakiError)
async def katagaki_error_handler(request: Request, exc: KatagakiError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "request_rejected",
        error_code=exc.code.value,
        status_code=exc.status_code,
        error=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = jsonable_encoder(exc.errors())
    logger.info("request_invalid", error_count=len(errors))
    return JSONResponse(
        status_code=422,
        content={"error": "Invalid request", "details": errors},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request_failed", error_type=type(exc).__name__)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
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
