"""
Main FastAPI application entry point.
"""

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager

from .core.config import settings
from .core.errors import AppError
from .core.logger import logger, log_error
from .api.routes import (
    notifications_router,
    residents_router,
    update_requests_router,
)
from .models import HealthCheckResponse, ValidationErrorResponse, ErrorResponse


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs on startup and shutdown.
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME}")
    logger.info(f"Environment: {settings.APP_ENV}")
    logger.info(f"API Version: {settings.API_VERSION}")
    logger.info(f"Debug Mode: {settings.DEBUG}")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="API for resident information update requests and notifications",
    version=settings.API_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)


# ============== Middleware ==============

# GZip Compression Middleware
app.add_middleware(
    GZipMiddleware,
    minimum_size=1000,  # Only compress responses larger than 1KB
    compresslevel=6
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.FRONTEND_URL,
    ] if not settings.DEBUG else [
        settings.FRONTEND_URL,
        "http://localhost:3000",
        "http://localhost:3001",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "If-Match"],
    expose_headers=["ETag"],
    max_age=3600,
)


# ============== Exception Handlers ==============

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Map domain errors onto their HTTP status."""
    if exc.status_code >= 500:
        log_error(exc, context={"method": request.method, "path": request.url.path})
    else:
        logger.info(
            f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}"
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            success=False,
            error=exc.message,
            error_code=exc.error_code,
            details=exc.details or None,
        ).model_dump()
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    # Log validation error without exposing sensitive data
    logger.warning(
        f"Validation error on {request.method} {request.url.path}",
        extra={
            "method": request.method,
            "path": request.url.path,
            "error_count": len(exc.errors())
        }
    )

    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"]
        })

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ValidationErrorResponse(
            success=False,
            error="Validation Error",
            errors=errors
        ).model_dump()
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    log_error(
        exc,
        context={
            "method": request.method,
            "path": request.url.path,
            "client_host": request.client.host if request.client else None
        }
    )

    # Never expose internal error details to the client
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            success=False,
            error="An unexpected error occurred. Please try again later.",
            error_code="INTERNAL_ERROR"
        ).model_dump()
    )


# ============== Routes ==============

@app.get(
    "/",
    response_model=dict,
    tags=["Root"]
)
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.API_VERSION,
        "environment": settings.APP_ENV,
        "docs": "/docs" if settings.DEBUG else "unavailable",
    }


@app.get(
    f"/{settings.API_VERSION}/health",
    response_model=HealthCheckResponse,
    tags=["Health"]
)
async def health_check():
    """Health check endpoint."""
    return HealthCheckResponse(
        status="healthy",
        version=settings.API_VERSION,
        environment=settings.APP_ENV,
        database="connected",
    )


# Include routers
app.include_router(
    notifications_router,
    prefix=f"/api/{settings.API_VERSION}"
)

app.include_router(
    residents_router,
    prefix=f"/api/{settings.API_VERSION}"
)

app.include_router(
    update_requests_router,
    prefix=f"/api/{settings.API_VERSION}"
)


# ============== Main ==============

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info" if settings.DEBUG else "warning",
    )
