"""FastAPI application."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .error_responses import register_error_handlers
from .routers import (
    customer_communication,
    exception_handling,
    order_management,
    order_workflow,
    party_members,
    processing_analytics,
)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Create app
app = FastAPI(
    title="KCT Order Operations",
    version="1.0.0",
    description="Order lifecycle, processing queue and exception handling for KCT Menswear",
)

# Production safety checks.
if settings.ENV.lower() == "production" and not settings.cors_origins:
    raise RuntimeError("ALLOWED_ORIGINS must be set in production (explicit frontend origin required).")
if settings.ENV.lower() == "production" and any(origin.strip() == "*" for origin in settings.cors_origins):
    raise RuntimeError("ALLOWED_ORIGINS must be explicit in production (no wildcard).")
if settings.ENV.lower() == "production" and settings.SUPABASE_JWT_SECRET == "change-me-in-production":
    raise RuntimeError("SUPABASE_JWT_SECRET must be set in production.")

# CORS
# Browser clients of the hosted platform send these headers on every call.
cors_headers = ["authorization", "x-client-info", "apikey", "content-type"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=cors_headers,
)

register_error_handlers(app)

# Include routers
app.include_router(order_management.router, prefix="/functions/v1")
app.include_router(order_workflow.router, prefix="/functions/v1")
app.include_router(exception_handling.router, prefix="/functions/v1")
app.include_router(processing_analytics.router, prefix="/functions/v1")
app.include_router(customer_communication.router, prefix="/functions/v1")
app.include_router(party_members.router, prefix="/functions/v1")


@app.get("/functions/v1/health")
def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": "1.0.0",
        "service": settings.APP_NAME,
    }


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "message": "KCT Order Operations API",
        "version": "1.0.0",
        "docs": "/docs",
    }
