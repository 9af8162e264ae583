"""
FastAPI Application Entry Point.

This is the main application file for the ProFast parcel delivery backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from profast.app.core.config import settings
from profast.app.api.v1.router import router as api_v1_router
from profast.app.core.jwt import create_access_token
from profast.app.core.observability import ObservabilityMiddleware, configure_logging
from profast.app.core.redis_client import ping_redis
from profast.app.db.session import engine, Base
from profast.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from profast.app.models.user import User
from profast.app.models.audit_log import AuditLog
from profast.app.models.parcel import Parcel
from profast.app.models.payment_record import PaymentRecord
from profast.app.models.rider import Rider
from profast.app.models.dlq import DeadLetterQueue

configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    Creates database tables on startup.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Parcel delivery backend: parcels, payments, riders and reconciliation",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if await ping_redis() else "down",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": f"Welcome to {settings.app_name}",
        "docs": "/docs",
        "health": "/health",
    }


if settings.debug:
    @app.post("/auth/test-token", tags=["Authentication"])
    async def generate_test_token(email: str = "test_user@example.com"):
        """Issue a bearer token for local testing. Registered only in debug mode."""
        email = email.lower()
        token = create_access_token(data={"sub": email, "email": email})
        return {
            "access_token": token,
            "token_type": "bearer",
            "email": email,
        }
