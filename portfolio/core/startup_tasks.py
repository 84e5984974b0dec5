"""Startup tasks for the application."""

import asyncio
import logging
from contextlib import asynccontextmanager

from .cleanup_service import cleanup_scheduler
from .config import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def startup_tasks():
    """Manage startup and shutdown tasks."""
    if not settings.ENABLE_BACKGROUND_TASKS:
        logger.info("Background services disabled")
        yield
        return

    # Startup
    logger.info("🚀 Starting background services...")
    cleanup_task = asyncio.create_task(cleanup_scheduler.start_auto_cleanup())

    try:
        yield
    finally:
        # Shutdown
        logger.info("🛑 Shutting down background services...")
        cleanup_scheduler.stop_auto_cleanup()
        cleanup_task.cancel()

        try:
            await cleanup_task
        except asyncio.CancelledError:
            logger.info("✅ Cleanup scheduler task cancelled")

        logger.info("✅ Background services stopped")
