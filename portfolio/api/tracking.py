"""Visitor tracking endpoints called by the public site."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..core.errors import RateLimitError
from ..core.geolocation import geolocation_service
from ..core.rate_limit import TRACKING_POLICY, RateLimiter, get_rate_limiter
from .. import crud, schemas

router = APIRouter(prefix="/api/analytics", tags=["Tracking"])


@router.post("/track")
def track_page_view(
    payload: schemas.TrackRequest,
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
    db: Session = Depends(get_db)
) -> dict:
    """Record one page view and extend the visitor's session."""
    client_ip = geolocation_service.get_client_ip(request)
    result = limiter.hit(client_ip, TRACKING_POLICY)
    if not result.allowed:
        raise RateLimitError("Rate limit exceeded", retry_after=result.retry_after)

    visitor = geolocation_service.get_visitor_info(request)
    session_id = payload.session_id or crud.generate_session_id(visitor.ip_address, visitor.user_agent)

    crud.record_page_view(
        db,
        session_id=session_id,
        visitor=visitor,
        page_url=payload.page_url,
        page_title=payload.page_title,
        referrer=payload.referrer,
    )
    return {"success": True, "sessionId": session_id}


@router.post("/session")
def update_session(
    payload: schemas.SessionRequest,
    request: Request,
    db: Session = Depends(get_db)
) -> dict:
    """start/heartbeat keep a session alive, end closes it."""
    visitor = geolocation_service.get_visitor_info(request)
    session_id = payload.session_id or crud.generate_session_id(visitor.ip_address, visitor.user_agent)

    if payload.action == "end":
        crud.end_session(db, session_id)
    else:
        crud.touch_session(db, session_id, visitor)

    return {"success": True, "sessionId": session_id}


@router.post("/web-vitals")
def record_web_vital(
    payload: schemas.WebVitalRequest,
    request: Request,
    db: Session = Depends(get_db)
) -> dict:
    visitor = geolocation_service.get_visitor_info(request)
    crud.record_web_vital(db, payload, visitor)
    return {"success": True}


@router.post("/error")
def report_client_error(
    payload: schemas.ClientErrorReport,
    request: Request,
    db: Session = Depends(get_db)
) -> dict:
    """Browser-side error reports, stored alongside the page views."""
    visitor = geolocation_service.get_visitor_info(request)
    crud.record_client_error(db, payload, visitor)
    return {"success": True}
