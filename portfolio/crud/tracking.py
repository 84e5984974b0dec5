"""Writes for the visitor tracking endpoints."""

import hashlib
import logging
import secrets
import time
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import NotFoundError
from ..core.geolocation import VisitorInfo
from ..models import AnalyticsEvent, PageView, VisitorSession, utcnow
from ..schemas import ClientErrorReport, WebVitalRequest

logger = logging.getLogger(__name__)

PAGE_TITLE_MAX_LENGTH = 500


def generate_session_id(ip_address: str, user_agent: str) -> str:
    """
    Deterministic visitor bucket for an IP and user agent pair.

    Every request from the same fingerprint maps onto the same id, so clients
    behind one NAT with identical browsers share a session.
    """
    return hashlib.sha256(f"{ip_address}-{user_agent}".encode("utf-8")).hexdigest()[:32]


def get_session(db: Session, session_id: str) -> Optional[VisitorSession]:
    return db.query(VisitorSession).filter(VisitorSession.session_id == session_id).first()


def _touch_session(db: Session, session_id: str, visitor: VisitorInfo, now: datetime, count_page_view: bool) -> None:
    session = get_session(db, session_id)
    if session is None:
        db.add(VisitorSession(
            session_id=session_id,
            user_agent=visitor.user_agent,
            ip_address=visitor.ip_address,
            country=visitor.country,
            city=visitor.city,
            device=visitor.device,
            browser=visitor.browser,
            start_time=now,
            end_time=now,
            page_views=1 if count_page_view else 0,
        ))
    else:
        session.end_time = now
        if count_page_view:
            session.page_views = VisitorSession.page_views + 1
    db.flush()


def upsert_session(db: Session, session_id: str, visitor: VisitorInfo,
                   count_page_view: bool = False, now: Optional[datetime] = None) -> None:
    """Create the session or extend it to ``now``; safe against a concurrent first insert."""
    now = now or utcnow()
    try:
        _touch_session(db, session_id, visitor, now, count_page_view)
    except IntegrityError:
        # Another request created the same session first
        db.rollback()
        _touch_session(db, session_id, visitor, now, count_page_view)


def record_page_view(
    db: Session,
    session_id: str,
    visitor: VisitorInfo,
    page_url: str,
    page_title: Optional[str] = None,
    referrer: Optional[str] = None,
    now: Optional[datetime] = None,
) -> None:
    """Upsert the session and append one analytics row and one page view row."""
    now = now or utcnow()
    try:
        upsert_session(db, session_id, visitor, count_page_view=True, now=now)
        db.add(AnalyticsEvent(
            page_url=page_url,
            page_title=(page_title or "")[:PAGE_TITLE_MAX_LENGTH] or None,
            referrer=referrer,
            user_agent=visitor.user_agent,
            ip_address=visitor.ip_address,
            country=visitor.country,
            city=visitor.city,
            device=visitor.device,
            browser=visitor.browser,
            session_id=session_id,
            timestamp=now,
        ))
        db.add(PageView(page_url=page_url, referrer=referrer, session_id=session_id, timestamp=now))
        db.commit()
    except Exception:
        db.rollback()
        raise


def touch_session(db: Session, session_id: str, visitor: VisitorInfo) -> None:
    """start/heartbeat: make sure the session exists and stamp its end time."""
    upsert_session(db, session_id, visitor)
    db.commit()


def end_session(db: Session, session_id: str) -> None:
    session = get_session(db, session_id)
    if session is None:
        raise NotFoundError("Session not found")
    session.end_time = utcnow()
    db.commit()


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _analytics_row(page_url: str, page_title: str, session_id: str, visitor: VisitorInfo,
                   user_agent: Optional[str]) -> AnalyticsEvent:
    return AnalyticsEvent(
        page_url=page_url,
        page_title=page_title[:PAGE_TITLE_MAX_LENGTH],
        user_agent=user_agent or visitor.user_agent,
        ip_address=visitor.ip_address,
        country=visitor.country,
        city=visitor.city,
        device=visitor.device,
        browser=visitor.browser,
        session_id=session_id,
        timestamp=utcnow(),
    )


def record_web_vital(db: Session, vital: WebVitalRequest, visitor: VisitorInfo) -> AnalyticsEvent:
    """Store a Core Web Vitals measurement as an analytics row."""
    title = f"Web Vital: {vital.name} - {_format_number(vital.value)} ({vital.rating or 'unknown'})"
    row = _analytics_row(vital.url, title, f"wv-{vital.id}", visitor, vital.user_agent)
    db.add(row)
    db.commit()
    return row


def record_client_error(db: Session, report: ClientErrorReport, visitor: VisitorInfo) -> AnalyticsEvent:
    """Store a browser-side error as an analytics row."""
    marker = report.digest or str(int(time.time() * 1000))
    session_id = f"error-{marker}-{secrets.token_hex(5)[:9]}"
    row = _analytics_row(report.url, f"Error: {report.message[:100]}", session_id, visitor, report.user_agent)
    db.add(row)
    db.commit()
    logger.warning(f"Client error reported from {report.url}: {report.message[:200]}")
    return row
