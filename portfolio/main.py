"""Main FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings, validate_environment
from .core.database import SessionLocal, close_db, init_db
from .core.errors import register_exception_handlers
from .core.logging_config import configure_logging
from .core.startup_tasks import startup_tasks
from .api import (
    auth_router,
    contact_router,
    projects_router,
    profile_router,
    tracking_router,
    analytics_router,
    cleanup_router,
    admin_contacts_router,
    admin_projects_router,
    files_router,
    system_router,
)
from . import crud

logger = logging.getLogger(__name__)


def bootstrap_admin() -> None:
    db = SessionLocal()
    try:
        crud.ensure_admin_user(db, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD, settings.ADMIN_NAME)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    configure_logging(settings.log_level)
    validate_environment()
    init_db()
    bootstrap_admin()
    logger.info(f"🚀 {settings.APP_NAME} {settings.APP_VERSION} started ({settings.ENVIRONMENT})")

    # Start background tasks
    async with startup_tasks():
        yield

    # Shutdown
    close_db()
    logger.info(f"🛑 {settings.APP_NAME} stopped")


app = FastAPI(
    title=settings.APP_NAME,
    description="API for the portfolio site: content, contact inbox and visitor analytics.",
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include API routers
app.include_router(system_router)
app.include_router(auth_router)
app.include_router(contact_router)
app.include_router(projects_router)
app.include_router(profile_router)
app.include_router(tracking_router)
app.include_router(analytics_router)
app.include_router(cleanup_router)
app.include_router(admin_contacts_router)
app.include_router(admin_projects_router)
app.include_router(files_router)


@app.get("/", tags=["Root"])
async def root() -> dict:
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/api/health"
    }
