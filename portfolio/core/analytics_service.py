"""Read-side aggregation over the raw analytics tables.

Every method is read-only and works on whatever rows are committed when it
runs. Rankings order by descending count, then ascending label, so equal
counts always come back in the same order.
"""

import logging
import time
from collections import Counter, defaultdict
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from dateutil import parser as date_parser
from dateutil import tz
from sqlalchemy import distinct, extract, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..models import AnalyticsEvent, PageView, VisitorSession, utcnow
from .database import is_postgres
from .errors import ValidationError

logger = logging.getLogger(__name__)

ACTIVE_SESSION_WINDOW = timedelta(minutes=30)
REALTIME_WINDOW = timedelta(hours=24)
TOP_PAGES_LIMIT = 10
TOP_BREAKDOWN_LIMIT = 10
POPULAR_PAGES_LIMIT = 20
VISITOR_FLOW_LIMIT = 50
RECENT_VISITORS_LIMIT = 50
RECENT_ACTIVITY_LIMIT = 20

# Heuristic row sizes used for storage estimates
ANALYTICS_ROW_KB = 0.5
PAGE_VIEW_ROW_KB = 0.2
SESSION_ROW_KB = 0.3


@dataclass
class AnalyticsFilters:
    country: Optional[str] = None
    device: Optional[str] = None
    browser: Optional[str] = None
    page: Optional[str] = None

    def active(self) -> Dict[str, str]:
        """Only the filters that were actually supplied."""
        return {key: value for key, value in asdict(self).items() if value}

    @property
    def has_session_filters(self) -> bool:
        return bool(self.country or self.device or self.browser)


# --- Parameter validation shared by the reporting endpoints ---

def parse_int_param(raw: Optional[str], name: str, default: int, minimum: int, maximum: int) -> int:
    """Parse an integer query parameter and enforce its bounds."""
    message = f"{name.capitalize()} parameter must be between {minimum} and {maximum}"
    if raw is None or raw == "":
        value = default
    else:
        try:
            value = int(raw)
        except (TypeError, ValueError):
            raise ValidationError(message) from None
    if not minimum <= value <= maximum:
        raise ValidationError(message)
    return value


def _span_label(max_days: int) -> str:
    if max_days % 365 == 0:
        years = max_days // 365
        return "1 year" if years == 1 else f"{years} years"
    return f"{max_days} days"


def parse_datetime_param(raw: str, end_of_day: bool = False) -> datetime:
    """ISO 8601 to naive UTC. A bare date used as a range end covers that whole day."""
    try:
        parsed = date_parser.isoparse(raw.strip())
    except (ValueError, OverflowError):
        raise ValidationError("Invalid date format") from None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(tz.UTC).replace(tzinfo=None)
    if end_of_day and len(raw.strip()) == 10:
        parsed = parsed + timedelta(days=1) - timedelta(microseconds=1)
    return parsed


def resolve_date_range(
    days: Optional[str],
    start_date: Optional[str],
    end_date: Optional[str],
    max_days: int,
    default_days: int = 30,
    now: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    """
    Turn request parameters into a ``(start, end)`` window.

    An explicit ``startDate``/``endDate`` pair wins over ``days``; otherwise the
    window ends now and reaches ``days`` back. Raises ``ValidationError`` for
    malformed dates, inverted ranges and spans longer than ``max_days``.
    """
    if start_date and end_date:
        start = parse_datetime_param(start_date)
        end = parse_datetime_param(end_date, end_of_day=True)
        if start > end:
            raise ValidationError("Start date must be before end date")
        if (end.date() - start.date()).days > max_days:
            raise ValidationError(f"Date range cannot exceed {_span_label(max_days)}")
        return start, end

    day_count = parse_int_param(days, "days", default_days, 1, max_days)
    end = now or utcnow()
    return end - timedelta(days=day_count), end


def _ranked(rows: Iterable[Tuple[Any, int]], label: str, default: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    merged: Counter = Counter()
    for key, count in rows:
        merged[key or default] += int(count)
    ordered = sorted(merged.items(), key=lambda item: (-item[1], item[0]))
    if limit is not None:
        ordered = ordered[:limit]
    return [{label: key, "count": count} for key, count in ordered]


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _elapsed_ms(started: float) -> int:
    return int(round((time.perf_counter() - started) * 1000))


class AnalyticsService:
    """Aggregations for the admin dashboard, exports and live stream."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    # --- query helpers ---

    def _session_ids_matching(self, filters: AnalyticsFilters):
        statement = select(VisitorSession.session_id)
        if filters.country:
            statement = statement.where(VisitorSession.country == filters.country)
        if filters.device:
            statement = statement.where(VisitorSession.device == filters.device)
        if filters.browser:
            statement = statement.where(VisitorSession.browser == filters.browser)
        return statement

    def _filter_page_views(self, query: Query, start: datetime, end: datetime,
                           filters: Optional[AnalyticsFilters] = None) -> Query:
        query = query.filter(PageView.timestamp >= start, PageView.timestamp <= end)
        if filters:
            if filters.page:
                query = query.filter(PageView.page_url.contains(filters.page))
            if filters.has_session_filters:
                query = query.filter(PageView.session_id.in_(self._session_ids_matching(filters)))
        return query

    def _filter_sessions(self, query: Query, start: datetime, end: datetime,
                         filters: Optional[AnalyticsFilters] = None) -> Query:
        query = query.filter(VisitorSession.start_time >= start, VisitorSession.start_time <= end)
        if filters:
            if filters.country:
                query = query.filter(VisitorSession.country == filters.country)
            if filters.device:
                query = query.filter(VisitorSession.device == filters.device)
            if filters.browser:
                query = query.filter(VisitorSession.browser == filters.browser)
            if filters.page:
                visited = select(PageView.session_id).where(PageView.page_url.contains(filters.page))
                query = query.filter(VisitorSession.session_id.in_(visited))
        return query

    def _filter_events(self, query: Query, start: datetime, end: datetime,
                       filters: Optional[AnalyticsFilters] = None) -> Query:
        query = query.filter(AnalyticsEvent.timestamp >= start, AnalyticsEvent.timestamp <= end)
        if filters:
            if filters.country:
                query = query.filter(AnalyticsEvent.country == filters.country)
            if filters.device:
                query = query.filter(AnalyticsEvent.device == filters.device)
            if filters.browser:
                query = query.filter(AnalyticsEvent.browser == filters.browser)
            if filters.page:
                query = query.filter(AnalyticsEvent.page_url.contains(filters.page))
        return query

    # --- dashboard data ---

    def get_daily_views(self, start: datetime, end: datetime,
                        filters: Optional[AnalyticsFilters] = None) -> List[Dict[str, Any]]:
        """Page views per calendar day, one entry for every day in the window."""
        day = func.date(PageView.timestamp)
        rows = self._filter_page_views(
            self.db.query(day, func.count(PageView.id)), start, end, filters
        ).group_by(day).all()
        counts = {str(value)[:10]: int(count) for value, count in rows if value is not None}

        daily = []
        current: date = start.date()
        while current <= end.date():
            key = current.isoformat()
            daily.append({"date": key, "views": counts.get(key, 0)})
            current += timedelta(days=1)
        return daily

    def get_analytics_data_with_filters(self, start: datetime, end: datetime,
                                        filters: Optional[AnalyticsFilters] = None) -> Dict[str, Any]:
        """Totals, breakdowns and daily series for a window, optionally filtered."""
        filters = filters or AnalyticsFilters()

        total_views = self._filter_page_views(
            self.db.query(func.count(PageView.id)), start, end, filters
        ).scalar() or 0
        unique_visitors = self._filter_page_views(
            self.db.query(func.count(distinct(PageView.session_id))), start, end, filters
        ).scalar() or 0

        top_pages_rows = self._filter_page_views(
            self.db.query(PageView.page_url, func.count(PageView.id)), start, end, filters
        ).group_by(PageView.page_url).all()
        top_pages = [
            {"url": item["url"], "views": item["count"]}
            for item in _ranked(top_pages_rows, "url", "Unknown", TOP_PAGES_LIMIT)
        ]

        device_stats = _ranked(
            self._filter_sessions(
                self.db.query(VisitorSession.device, func.count(VisitorSession.id)), start, end, filters
            ).group_by(VisitorSession.device).all(),
            "device", "Unknown"
        )
        browser_stats = _ranked(
            self._filter_sessions(
                self.db.query(VisitorSession.browser, func.count(VisitorSession.id)), start, end, filters
            ).group_by(VisitorSession.browser).all(),
            "browser", "Unknown"
        )
        country_stats = _ranked(
            self._filter_sessions(
                self.db.query(VisitorSession.country, func.count(VisitorSession.id)), start, end, filters
            ).group_by(VisitorSession.country).all(),
            "country", "Unknown"
        )

        recent = self._filter_events(self.db.query(AnalyticsEvent), start, end, filters).order_by(
            AnalyticsEvent.timestamp.desc(), AnalyticsEvent.id.desc()
        ).limit(RECENT_VISITORS_LIMIT).all()
        recent_visitors = [
            {
                "country": row.country,
                "city": row.city,
                "timestamp": _iso(row.timestamp),
                "pageUrl": row.page_url,
            }
            for row in recent
        ]

        return {
            "totalViews": int(total_views),
            "uniqueVisitors": int(unique_visitors),
            "topPages": top_pages,
            "deviceStats": device_stats,
            "browserStats": browser_stats,
            "countryStats": country_stats,
            "dailyViews": self.get_daily_views(start, end, filters),
            "recentVisitors": recent_visitors,
            "performanceMetrics": self.get_performance_metrics(start, end),
            "dateRange": {"startDate": _iso(start), "endDate": _iso(end)},
            "filters": filters.active(),
        }

    def get_analytics_data(self, days: int = 30) -> Dict[str, Any]:
        end = self.clock()
        return self.get_analytics_data_with_filters(end - timedelta(days=days), end)

    def get_analytics_summary(self, start: datetime, end: datetime) -> Dict[str, Any]:
        """Headline metrics plus top countries and referrers."""
        total_views = self._filter_page_views(self.db.query(func.count(PageView.id)), start, end).scalar() or 0
        unique_visitors = self._filter_page_views(
            self.db.query(func.count(distinct(PageView.session_id))), start, end
        ).scalar() or 0

        sessions_started = self._filter_sessions(self.db.query(func.count(VisitorSession.id)), start, end).scalar() or 0
        bounced = self._filter_sessions(
            self.db.query(func.count(VisitorSession.id)), start, end
        ).filter(VisitorSession.page_views == 1).scalar() or 0
        avg_pages = self._filter_sessions(
            self.db.query(func.avg(VisitorSession.page_views)), start, end
        ).filter(VisitorSession.end_time.isnot(None)).scalar()

        bounce_rate = (bounced / sessions_started) * 100 if sessions_started else 0

        top_countries = _ranked(
            self._filter_sessions(
                self.db.query(VisitorSession.country, func.count(VisitorSession.id)), start, end
            ).filter(VisitorSession.country.isnot(None)).group_by(VisitorSession.country).all(),
            "country", "Unknown", TOP_BREAKDOWN_LIMIT
        )
        top_referrers = _ranked(
            self._filter_events(
                self.db.query(AnalyticsEvent.referrer, func.count(AnalyticsEvent.id)), start, end
            ).filter(AnalyticsEvent.referrer.isnot(None)).group_by(AnalyticsEvent.referrer).all(),
            "referrer", "Direct", TOP_BREAKDOWN_LIMIT
        )

        return {
            "totalViews": int(total_views),
            "uniqueVisitors": int(unique_visitors),
            "avgPagesPerSession": round(float(avg_pages or 0), 2),
            "bounceRate": round(bounce_rate, 2),
            "topCountries": top_countries,
            "topReferrers": top_referrers,
        }

    def get_realtime_analytics(self) -> Dict[str, Any]:
        """Activity in the last 30 minutes and the last 24 hours."""
        now = self.clock()
        active_sessions = self.db.query(func.count(VisitorSession.id)).filter(
            VisitorSession.end_time >= now - ACTIVE_SESSION_WINDOW
        ).scalar() or 0
        recent_views = self.db.query(func.count(PageView.id)).filter(
            PageView.timestamp >= now - REALTIME_WINDOW
        ).scalar() or 0
        activity = self.db.query(AnalyticsEvent).filter(
            AnalyticsEvent.timestamp >= now - REALTIME_WINDOW
        ).order_by(AnalyticsEvent.timestamp.desc(), AnalyticsEvent.id.desc()).limit(RECENT_ACTIVITY_LIMIT).all()

        return {
            "activeSessions": int(active_sessions),
            "recentViews": int(recent_views),
            "recentActivity": [
                {
                    "pageUrl": row.page_url,
                    "pageTitle": row.page_title,
                    "country": row.country,
                    "city": row.city,
                    "device": row.device,
                    "browser": row.browser,
                    "timestamp": _iso(row.timestamp),
                }
                for row in activity
            ],
        }

    def get_hourly_analytics(self, hours: int = 24) -> List[Dict[str, Any]]:
        """Views and distinct visitors per clock hour, oldest first."""
        since = self.clock() - timedelta(hours=hours)
        rows = self.db.query(PageView.timestamp, PageView.session_id).filter(PageView.timestamp >= since).all()

        views: Counter = Counter()
        visitors = defaultdict(set)
        for timestamp, session_id in rows:
            bucket = timestamp.replace(minute=0, second=0, microsecond=0)
            views[bucket] += 1
            visitors[bucket].add(session_id)

        return [
            {"hour": bucket.isoformat(), "views": views[bucket], "visitors": len(visitors[bucket])}
            for bucket in sorted(views)
        ]

    def get_popular_pages(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        """Top pages with distinct visitors and the average length of the sessions that viewed them."""
        rows = self._filter_page_views(
            self.db.query(PageView.page_url, PageView.session_id, VisitorSession.start_time, VisitorSession.end_time)
            .select_from(PageView)
            .outerjoin(VisitorSession, VisitorSession.session_id == PageView.session_id),
            start, end
        ).all()

        views: Counter = Counter()
        visitors = defaultdict(set)
        durations = defaultdict(list)
        for page_url, session_id, started, ended in rows:
            views[page_url] += 1
            visitors[page_url].add(session_id)
            if started and ended:
                durations[page_url].append((ended - started).total_seconds())

        ranked = sorted(views.items(), key=lambda item: (-item[1], item[0]))[:POPULAR_PAGES_LIMIT]
        return [
            {
                "url": url,
                "views": count,
                "uniqueVisitors": len(visitors[url]),
                "avgTimeOnPage": int(round(sum(durations[url]) / len(durations[url]))) if durations[url] else 0,
            }
            for url, count in ranked
        ]

    def get_popular_pages_for_days(self, days: int = 30) -> List[Dict[str, Any]]:
        end = self.clock()
        return self.get_popular_pages(end - timedelta(days=days), end)

    def get_visitor_flow(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        """Most common consecutive page pairs within a session."""
        rows = self._filter_page_views(
            self.db.query(PageView.session_id, PageView.page_url), start, end
        ).order_by(PageView.session_id, PageView.timestamp, PageView.id).all()

        transitions: Counter = Counter()
        previous_session, previous_page = None, None
        for session_id, page_url in rows:
            if session_id == previous_session and previous_page is not None:
                transitions[(previous_page, page_url)] += 1
            previous_session, previous_page = session_id, page_url

        ranked = sorted(transitions.items(), key=lambda item: (-item[1], item[0]))[:VISITOR_FLOW_LIMIT]
        return [
            {"fromPage": from_page, "toPage": to_page, "transitions": count}
            for (from_page, to_page), count in ranked
        ]

    def get_visitor_flow_for_days(self, days: int = 30) -> List[Dict[str, Any]]:
        end = self.clock()
        return self.get_visitor_flow(end - timedelta(days=days), end)

    # --- performance ---

    def get_performance_metrics(self, start: datetime, end: datetime) -> Dict[str, Any]:
        """Row volume, busiest hour of day and how long those queries took."""
        started = time.perf_counter()
        total_records = self._filter_events(self.db.query(func.count(AnalyticsEvent.id)), start, end).scalar() or 0
        count_ms = _elapsed_ms(started)

        started = time.perf_counter()
        hour = extract("hour", AnalyticsEvent.timestamp)
        peak = self._filter_events(
            self.db.query(hour, func.count(AnalyticsEvent.id)), start, end
        ).group_by(hour).order_by(func.count(AnalyticsEvent.id).desc(), hour.asc()).first()
        peak_ms = _elapsed_ms(started)

        return {
            "totalRecords": int(total_records),
            "avgResponseTime": count_ms + peak_ms,
            "peakHour": {"hour": int(peak[0]), "count": int(peak[1])} if peak else {"hour": 0, "count": 0},
            "estimatedDataSizeKB": int(round(total_records * ANALYTICS_ROW_KB)),
            "queryPerformance": {"countQueryMs": count_ms, "peakHourQueryMs": peak_ms},
        }

    def get_query_performance(self) -> Dict[str, Any]:
        """Time a few representative queries against the analytics table."""
        overall = time.perf_counter()

        started = time.perf_counter()
        simple = self.db.query(func.count(AnalyticsEvent.id)).scalar()
        simple_ms = _elapsed_ms(started)

        started = time.perf_counter()
        aggregation = self.db.query(AnalyticsEvent.device, func.count(AnalyticsEvent.id)).group_by(
            AnalyticsEvent.device
        ).order_by(func.count(AnalyticsEvent.id).desc()).limit(10).all()
        aggregation_ms = _elapsed_ms(started)

        started = time.perf_counter()
        listing = self.db.query(AnalyticsEvent.id).order_by(AnalyticsEvent.timestamp.desc()).limit(100).all()
        listing_ms = _elapsed_ms(started)

        return {
            "simpleQuery": {"rows": int(simple or 0), "duration": simple_ms},
            "aggregationQuery": {"rows": len(aggregation), "duration": aggregation_ms},
            "listQuery": {"rows": len(listing), "duration": listing_ms},
            "overallResponseTime": _elapsed_ms(overall),
        }

    def get_index_usage_stats(self) -> List[Dict[str, Any]]:
        """PostgreSQL index scan counters for the analytics tables; empty elsewhere or on failure."""
        if not is_postgres(self.db):
            return []
        try:
            rows = self.db.execute(text(
                "SELECT relname AS table_name, indexrelname AS index_name, idx_scan, idx_tup_read, idx_tup_fetch "
                "FROM pg_stat_user_indexes "
                "WHERE schemaname = 'public' AND relname IN ('analytics', 'page_views', 'sessions') "
                "ORDER BY idx_scan DESC"
            )).all()
        except SQLAlchemyError as e:
            logger.warning(f"Index usage stats not available: {e}")
            self.db.rollback()
            return []

        stats = []
        for row in rows:
            read = int(row.idx_tup_read or 0)
            fetched = int(row.idx_tup_fetch or 0)
            stats.append({
                "tableName": row.table_name,
                "indexName": row.index_name,
                "scans": int(row.idx_scan or 0),
                "tuplesRead": read,
                "tuplesFetched": fetched,
                "efficiency": round(fetched / read * 100, 2) if read else 0,
            })
        return stats

    def get_slow_query_analysis(self, days: int) -> List[Dict[str, Any]]:
        since = self.clock() - timedelta(days=days)
        rows_in_window = self.db.query(func.count(AnalyticsEvent.id)).filter(
            AnalyticsEvent.timestamp >= since
        ).scalar() or 0
        distinct_groups = self.db.query(func.count(distinct(AnalyticsEvent.page_url))).filter(
            AnalyticsEvent.timestamp >= since
        ).scalar() or 0

        return [
            {
                "type": "large_result_set",
                "count": int(rows_in_window),
                "recommendation": "Consider pagination for large result sets"
                if rows_in_window > 1000 else "Result set size is acceptable",
            },
            {
                "type": "heavy_aggregation",
                "count": int(distinct_groups),
                "recommendation": "Consider pre-aggregating data for better performance"
                if distinct_groups > 1000 else "Aggregation complexity is manageable",
            },
            {
                "type": "unindexed_queries",
                "count": 0,
                "recommendation": "Ensure proper indexes on timestamp, session_id, and page_url columns",
            },
        ]

    @staticmethod
    def get_optimization_recommendations(metrics: Dict[str, Any]) -> List[Dict[str, str]]:
        recommendations = []
        if metrics.get("avgResponseTime", 0) > 1000:
            recommendations.append({
                "type": "performance",
                "priority": "high",
                "issue": "Slow query response time",
                "recommendation": "Consider adding database indexes, optimizing queries, or implementing caching",
            })
        if metrics.get("totalRecords", 0) > 100000:
            recommendations.append({
                "type": "scalability",
                "priority": "medium",
                "issue": "Large dataset size",
                "recommendation": "Schedule retention cleanup or archive old analytics data",
            })
        if metrics.get("peakHour", {}).get("count", 0) > 1000:
            recommendations.append({
                "type": "capacity",
                "priority": "medium",
                "issue": "High peak hour traffic",
                "recommendation": "Consider caching dashboard queries during peak hours",
            })
        recommendations.append({
            "type": "optimization",
            "priority": "low",
            "issue": "Continuous improvement",
            "recommendation": "Regularly monitor query performance and update indexes based on usage patterns",
        })
        return recommendations
