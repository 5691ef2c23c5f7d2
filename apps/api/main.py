"""
AIMSii Shopify Sync API - FastAPI application entry point
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from apps.api.routers import transform
from packages.common.ai_provider import AIProvider
from packages.common.config import Settings, get_settings
from packages.common.errors import (
    CacheCorruptError,
    MappingGenerationError,
    SyncError,
    TransformError,
)
from packages.common.logging_setup import configure_logging
from packages.domain.transformation.field_mapping import FieldMappingResolver
from packages.domain.transformation.transform_cache import TransformCacheRepository
from packages.domain.transformation.transform_service import TransformService

settings = get_settings()
configure_logging(settings.log_level, json_logs=settings.json_logs)

logger = structlog.get_logger()

VERSION = "0.1.0"


def build_services(app: FastAPI, config: Settings, ai_provider: Optional[AIProvider] = None) -> None:
    """Wire the transform pipeline into app.state"""
    ai_provider = ai_provider or AIProvider(config)

    repository = TransformCacheRepository(
        config.transform_cache_path,
        max_examples=config.max_examples_per_template,
        similarity_threshold=config.cache_similarity_threshold,
    )

    app.state.transform_service = TransformService(
        ai_provider,
        repository,
        hit_threshold=config.cache_hit_threshold,
    )
    app.state.mapping_resolver = FieldMappingResolver(
        ai_provider,
        config.field_mapping_path,
        sample_size=config.mapping_sample_size,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan context manager"""
    logger.info("starting_sync_api",
                environment=settings.environment,
                version=VERSION,
                ai_provider=settings.ai_provider)

    build_services(app, settings)

    # Fail fast on a corrupt cache instead of at the first request
    app.state.transform_service.initialize_cache()

    yield

    logger.info("shutting_down_sync_api")


# Create FastAPI application
app = FastAPI(
    title="AIMSii Shopify Sync API",
    description="AI-assisted transformation of AIMSii inventory records into Shopify product drafts",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.environment != "production" else None,
    redoc_url="/redoc" if settings.environment != "production" else None,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


SYNC_ERROR_STATUS = {
    MappingGenerationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    TransformError: status.HTTP_502_BAD_GATEWAY,
    CacheCorruptError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


# Exception handlers
@app.exception_handler(SyncError)
async def sync_error_handler(request: Request, exc: SyncError):
    """Map domain errors to JSON error bodies"""
    status_code = SYNC_ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    logger.warning("sync_error",
                   path=request.url.path,
                   code=exc.code,
                   error=exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors with structured logging"""
    logger.warning("validation_error",
                   path=request.url.path,
                   errors=exc.errors())
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.errors()},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors"""
    logger.error("unhandled_exception",
                 path=request.url.path,
                 error=str(exc),
                 exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "request_id": request.headers.get("x-request-id"),
        },
    )


# Include routers
app.include_router(transform.router, prefix="/api/v1/transform", tags=["Transform"])


@app.get("/health", tags=["System"])
async def health_check(request: Request):
    """Health check endpoint for Docker and monitoring"""
    service = getattr(request.app.state, "transform_service", None)
    cache_loaded = service is not None and service.cache is not None
    return {
        "status": "healthy",
        "environment": settings.environment,
        "version": VERSION,
        "services": {
            "transform_cache": "loaded" if cache_loaded else "not_loaded",
            "ai_provider": settings.ai_provider,
        },
    }


# Metrics endpoint (Prometheus)
@app.get("/metrics", tags=["System"])
async def metrics():
    """Prometheus metrics endpoint"""
    if not settings.metrics_enabled:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": "Metrics disabled"}
        )

    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


@app.get("/", tags=["System"])
async def root():
    """API root endpoint"""
    return {
        "name": "AIMSii Shopify Sync API",
        "version": VERSION,
        "environment": settings.environment,
        "docs": "/docs" if settings.environment != "production" else None,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "apps.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
