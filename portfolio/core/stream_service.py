"""Server-sent events feed of the real-time dashboard numbers."""

import asyncio
import json
import logging
import secrets
import string
import time
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import utcnow
from .analytics_service import AnalyticsService
from .database import SessionLocal

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MS = 30000
MIN_INTERVAL_MS = 5000
MAX_INTERVAL_MS = 300000

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

_UPDATE_ID_ALPHABET = string.ascii_lowercase + string.digits


def clamp_interval(raw: Optional[str]) -> int:
    """Client-requested refresh interval in milliseconds, clamped to the allowed range."""
    try:
        interval = int(raw) if raw not in (None, "") else DEFAULT_INTERVAL_MS
    except (TypeError, ValueError):
        interval = DEFAULT_INTERVAL_MS
    return min(MAX_INTERVAL_MS, max(MIN_INTERVAL_MS, interval))


def format_sse(payload: Dict[str, Any], event: Optional[str] = None) -> str:
    """One SSE frame; ``event`` is only written for named events."""
    frame = f"event: {event}\n" if event else ""
    return f"{frame}data: {json.dumps(payload, default=str)}\n\n"


def new_update_id() -> str:
    return "".join(secrets.choice(_UPDATE_ID_ALPHABET) for _ in range(9))


def iso_now(now: Optional[datetime] = None) -> str:
    return (now or utcnow()).isoformat(timespec="milliseconds") + "Z"


def build_snapshot(session_factory: Callable[[], Session] = SessionLocal) -> Dict[str, Any]:
    """Run the real-time aggregation on a fresh session."""
    db = session_factory()
    try:
        return AnalyticsService(db).get_realtime_analytics()
    finally:
        db.close()


class AnalyticsStream:
    """Generates the frames for one connected client."""

    def __init__(self, request, interval_ms: int = DEFAULT_INTERVAL_MS,
                 session_factory: Callable[[], Session] = SessionLocal,
                 sleep: Callable[[float], Any] = asyncio.sleep,
                 wall_clock_ms: Callable[[], int] = lambda: int(time.time() * 1000)):
        self.request = request
        self.interval_ms = interval_ms
        self.session_factory = session_factory
        self.sleep = sleep
        self.wall_clock_ms = wall_clock_ms
        self.last_server_time = 0

    def _server_time(self) -> int:
        # Never step backwards within one stream even if the wall clock does
        self.last_server_time = max(self.last_server_time, self.wall_clock_ms())
        return self.last_server_time

    async def _tick(self) -> str:
        try:
            snapshot = await asyncio.to_thread(build_snapshot, self.session_factory)
        except SQLAlchemyError as e:
            logger.error(f"Analytics stream tick failed: {e}")
            return format_sse({"error": "Failed to fetch analytics data", "timestamp": iso_now()}, event="error")

        snapshot.update({
            "timestamp": iso_now(),
            "serverTime": self._server_time(),
            "updateId": new_update_id(),
        })
        return format_sse(snapshot)

    async def events(self) -> AsyncIterator[str]:
        """Emit a snapshot immediately, then one per interval until the client goes away."""
        logger.info(f"📡 Analytics stream opened (interval {self.interval_ms} ms)")
        try:
            while not await self.request.is_disconnected():
                yield await self._tick()
                await self.sleep(self.interval_ms / 1000)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Analytics stream closed after an internal error")
        finally:
            logger.info("📡 Analytics stream closed")
