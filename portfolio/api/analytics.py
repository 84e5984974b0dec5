"""Admin reporting endpoints: dashboard aggregates, exports and the live stream."""

from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from sqlalchemy.orm import Session

from ..core.analytics_service import (
    AnalyticsFilters,
    AnalyticsService,
    parse_int_param,
    resolve_date_range,
)
from ..core.database import get_db
from ..core.errors import ValidationError
from ..core.report_service import build_csv_report, build_json_export, export_filename
from ..core.security import require_admin
from ..core.stream_service import SSE_HEADERS, AnalyticsStream, clamp_interval, iso_now
from .. import schemas, models

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])

MAX_SUMMARY_DAYS = 365
MAX_EXPORT_DAYS = 730
MAX_HOURS = 168


def _period(start, end, **extra) -> dict:
    return {"startDate": start.isoformat(), "endDate": end.isoformat(), **extra}


def _filters(country: Optional[str], device: Optional[str], browser: Optional[str],
             page: Optional[str]) -> AnalyticsFilters:
    return AnalyticsFilters(country=country or None, device=device or None,
                            browser=browser or None, page=page or None)


@router.get("/summary")
def get_summary(
    days: Optional[str] = Query(None, description="Days to look back (1-365)"),
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> dict:
    day_count = parse_int_param(days, "days", 30, 1, MAX_SUMMARY_DAYS)
    service = AnalyticsService(db)
    end = service.clock()
    start = end - timedelta(days=day_count)
    return {
        "success": True,
        "data": service.get_analytics_summary(start, end),
        "period": _period(start, end, days=day_count),
    }


@router.get("/data")
def get_data(
    days: Optional[str] = Query(None, description="Days to look back (1-730)"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    country: Optional[str] = Query(None),
    device: Optional[str] = Query(None),
    browser: Optional[str] = Query(None),
    page: Optional[str] = Query(None),
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> dict:
    """Full dashboard data for a window, optionally filtered."""
    start, end = resolve_date_range(days, start_date, end_date, MAX_EXPORT_DAYS)
    service = AnalyticsService(db)
    data = service.get_analytics_data_with_filters(start, end, _filters(country, device, browser, page))
    return {"success": True, "data": data}


@router.get("/pages")
def get_pages(
    days: Optional[str] = Query(None, description="Days to look back (1-365)"),
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> dict:
    day_count = parse_int_param(days, "days", 30, 1, MAX_SUMMARY_DAYS)
    service = AnalyticsService(db)
    end = service.clock()
    start = end - timedelta(days=day_count)
    return {
        "success": True,
        "data": service.get_popular_pages(start, end),
        "period": _period(start, end, days=day_count),
    }


@router.get("/hourly")
def get_hourly(
    hours: Optional[str] = Query(None, description="Hours to look back (1-168)"),
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> dict:
    hour_count = parse_int_param(hours, "hours", 24, 1, MAX_HOURS)
    service = AnalyticsService(db)
    end = service.clock()
    return {
        "success": True,
        "data": service.get_hourly_analytics(hour_count),
        "period": {
            "hours": hour_count,
            "startTime": (end - timedelta(hours=hour_count)).isoformat(),
            "endTime": end.isoformat(),
        },
    }


@router.get("/realtime")
def get_realtime(
    include_hourly: Optional[str] = Query(None, alias="includeHourly"),
    hours: Optional[str] = Query(None, description="Hours of hourly data (1-168)"),
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> dict:
    """Live counters, also the polling fallback of the stream client."""
    hour_count = parse_int_param(hours, "hours", 24, 1, MAX_HOURS)
    service = AnalyticsService(db)
    data = service.get_realtime_analytics()
    if include_hourly == "true":
        data["hourlyData"] = service.get_hourly_analytics(hour_count)
    data["timestamp"] = iso_now()
    return {"success": True, "data": data}


@router.get("/performance")
def get_performance(
    days: Optional[str] = Query(None, description="Days to look back (1-365)"),
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> dict:
    day_count = parse_int_param(days, "days", 30, 1, MAX_SUMMARY_DAYS)
    service = AnalyticsService(db)
    end = service.clock()
    metrics = service.get_performance_metrics(end - timedelta(days=day_count), end)
    return {
        "success": True,
        "data": {
            "performanceMetrics": metrics,
            "queryPerformance": service.get_query_performance(),
            "indexUsage": service.get_index_usage_stats(),
            "slowQueries": service.get_slow_query_analysis(day_count),
            "optimizationRecommendations": service.get_optimization_recommendations(metrics),
            "timestamp": iso_now(),
        },
    }


@router.get("/export")
def export_analytics(
    format: str = Query("csv", description="csv or json"),
    days: Optional[str] = Query(None, description="Days to look back (1-730)"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    country: Optional[str] = Query(None),
    device: Optional[str] = Query(None),
    browser: Optional[str] = Query(None),
    page: Optional[str] = Query(None),
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Response:
    """Download the dashboard data as a CSV report or a JSON bundle."""
    if format not in ("csv", "json"):
        raise ValidationError("Format must be csv or json")

    start, end = resolve_date_range(days, start_date, end_date, MAX_EXPORT_DAYS)
    filters = _filters(country, device, browser, page)
    service = AnalyticsService(db)

    analytics = service.get_analytics_data_with_filters(start, end, filters)
    summary = service.get_analytics_summary(start, end)
    popular_pages = service.get_popular_pages(start, end)
    visitor_flow = service.get_visitor_flow(start, end)

    if format == "json":
        document = build_json_export(analytics, summary, popular_pages, visitor_flow, start, end, filters.active())
        return JSONResponse(
            content=document,
            headers={"Content-Disposition": f'attachment; filename="{export_filename(start, end, "json")}"'},
        )

    csv_report = build_csv_report(analytics, summary, popular_pages, visitor_flow, start, end, filters.active())
    return Response(
        content=csv_report,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(start, end, "csv")}"'},
    )


@router.get("/stream")
async def stream_analytics(
    request: Request,
    interval: Optional[str] = Query(None, description="Refresh interval in milliseconds"),
    current_user: models.User = Depends(require_admin)
) -> StreamingResponse:
    """Server-sent events with a fresh real-time snapshot every ``interval`` ms."""
    stream = AnalyticsStream(request, interval_ms=clamp_interval(interval))
    return StreamingResponse(stream.events(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.post("/stream")
async def configure_stream(
    command: schemas.StreamCommand,
    current_user: models.User = Depends(require_admin)
) -> dict:
    if command.action == "configure":
        return {"success": True, "message": "Stream configuration updated", "config": command.config}
    if command.action == "broadcast":
        return {"success": True, "message": "Event broadcasted", "event": command.config}
    raise ValidationError("Invalid action")
