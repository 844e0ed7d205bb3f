"""
Immigration Services API
========================

FastAPI application: case status transitions, call signaling, documents,
notifications and account flows for the web dashboard and mobile app.

Run with:
    python -m immigration_backend.run
    # or
    uvicorn immigration_backend.api:app --reload
"""

import os
import logging
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api_auth import router as auth_router
from .api_calls import router as calls_router
from .api_cases import router as cases_router
from .api_cron import router as cron_router
from .api_documents import router as documents_router
from .api_notifications import router as notifications_router
from .config import get_settings
from .db.session import init_db
from .errors import register_exception_handlers
from .middleware.security import SecurityHeadersMiddleware
from .notifications.push import close_push_client
from .realtime.client import close_realtime_db

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Immigration Services API",
    description="Case management, call signaling and notifications for immigration services",
    version=get_settings().service_version,
    docs_url="/docs",
    redoc_url="/redoc",
)


def _parse_cors_origins(raw: str) -> List[str]:
    origins: List[str] = []
    for item in raw.split(","):
        origin = item.strip().strip('"').strip("'").rstrip("/")
        if origin:
            origins.append(origin)
    return origins


_cors_raw = os.environ.get("CORS_ORIGINS", "http://localhost:3000,http://localhost:8081")
CORS_ALLOW_ORIGINS = _parse_cors_origins(_cors_raw)
logger.info(f"CORS allow origins: {CORS_ALLOW_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)

register_exception_handlers(app)

app.include_router(auth_router)
app.include_router(cases_router)
app.include_router(calls_router)
app.include_router(documents_router)
app.include_router(notifications_router)
app.include_router(cron_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    settings = get_settings()
    return {
        "status": "healthy",
        "version": settings.service_version,
        "environment": settings.environment,
        "realtime_configured": bool(settings.firebase_database_url),
    }


@app.on_event("startup")
async def startup_event():
    """Initialize on startup"""
    settings = get_settings()
    logger.info(f"Starting Immigration Services API v{settings.service_version} ({settings.environment})")

    for warning in settings.validate_integrations():
        logger.warning(warning)

    init_db()
    logger.info("Database tables ensured")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    await close_push_client()
    await close_realtime_db()
