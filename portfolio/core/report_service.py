"""Analytics export documents (CSV report and JSON bundle)."""

from datetime import datetime
from typing import Any, Dict, List, Optional

VISITOR_FLOW_EXPORT_LIMIT = 20


def quoted(value: Any) -> str:
    """Wrap a text cell in double quotes, doubling any embedded quote."""
    return '"' + str(value if value is not None else "").replace('"', '""') + '"'


def iso_timestamp(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds") + "Z"


def export_filename(start: datetime, end: datetime, extension: str) -> str:
    return f"analytics-{start.date().isoformat()}-to-{end.date().isoformat()}.{extension}"


def _percentage(count: int, total: int) -> str:
    return f"{count / total * 100:.1f}%" if total else "0%"


def _format_rate(value: float) -> str:
    return f"{value:g}%"


def _section(rows: List[str], title: str, header: str, lines: List[str]) -> None:
    rows.append(title)
    rows.append(header)
    rows.extend(lines)
    rows.append("")


def build_csv_report(
    analytics: Dict[str, Any],
    summary: Dict[str, Any],
    popular_pages: List[Dict[str, Any]],
    visitor_flow: List[Dict[str, Any]],
    start: datetime,
    end: datetime,
    filters: Optional[Dict[str, str]] = None,
    exported_at: Optional[datetime] = None,
) -> str:
    """
    Render the export as labelled CSV sections separated by blank lines.

    Text cells (URLs, countries, referrers, devices, browsers) are quoted and
    numbers are not, so every section parses as ordinary CSV.
    """
    exported_at = exported_at or datetime.utcnow()
    applied = ", ".join(f"{key}:{value}" for key, value in (filters or {}).items() if value)

    rows = [
        "Analytics Export Report",
        f"Export Date,{iso_timestamp(exported_at)}",
        f"Date Range,{start.date().isoformat()} to {end.date().isoformat()}",
        f"Applied Filters,{quoted(applied)}",
        "",
    ]

    _section(rows, "Summary Metrics", "Metric,Value", [
        f"Total Page Views,{analytics['totalViews']}",
        f"Unique Visitors,{analytics['uniqueVisitors']}",
        f"Average Pages per Session,{summary['avgPagesPerSession']:.2f}",
        f"Bounce Rate,{_format_rate(summary['bounceRate'])}",
    ])

    _section(rows, "Daily Page Views", "Date,Views", [
        f"{day['date']},{day['views']}" for day in analytics["dailyViews"]
    ])

    _section(rows, "Popular Pages (with Engagement)", "Page URL,Views,Unique Visitors,Avg Time on Page (seconds)", [
        f"{quoted(page['url'])},{page['views']},{page['uniqueVisitors']},{page['avgTimeOnPage']}"
        for page in popular_pages
    ])

    _section(rows, "Top Countries", "Country,Visitors", [
        f"{quoted(item['country'])},{item['count']}" for item in summary["topCountries"]
    ])

    _section(rows, "Top Referrers", "Referrer,Count", [
        f"{quoted(item['referrer'])},{item['count']}" for item in summary["topReferrers"]
    ])

    device_total = sum(item["count"] for item in analytics["deviceStats"])
    _section(rows, "Device Breakdown", "Device,Count,Percentage", [
        f"{quoted(item['device'])},{item['count']},{_percentage(item['count'], device_total)}"
        for item in analytics["deviceStats"]
    ])

    browser_total = sum(item["count"] for item in analytics["browserStats"])
    _section(rows, "Browser Breakdown", "Browser,Count,Percentage", [
        f"{quoted(item['browser'])},{item['count']},{_percentage(item['count'], browser_total)}"
        for item in analytics["browserStats"]
    ])

    _section(rows, "Visitor Flow (Top Transitions)", "From Page,To Page,Transitions", [
        f"{quoted(flow['fromPage'])},{quoted(flow['toPage'])},{flow['transitions']}"
        for flow in visitor_flow[:VISITOR_FLOW_EXPORT_LIMIT]
    ])

    performance = analytics.get("performanceMetrics")
    if performance:
        _section(rows, "Performance Metrics", "Metric,Value", [
            f"Total Records,{performance['totalRecords']}",
            f"Query Response Time (ms),{performance['avgResponseTime']}",
            f"Peak Hour,{performance['peakHour']['hour']}:00",
            f"Peak Hour Traffic,{performance['peakHour']['count']}",
            f"Estimated Data Size (KB),{performance['estimatedDataSizeKB']}",
        ])

    return "\n".join(rows)


def build_json_export(
    analytics: Dict[str, Any],
    summary: Dict[str, Any],
    popular_pages: List[Dict[str, Any]],
    visitor_flow: List[Dict[str, Any]],
    start: datetime,
    end: datetime,
    filters: Optional[Dict[str, str]] = None,
    exported_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    exported_at = exported_at or datetime.utcnow()
    return {
        "metadata": {
            "exportDate": iso_timestamp(exported_at),
            "dateRange": {"startDate": iso_timestamp(start), "endDate": iso_timestamp(end)},
            "filters": filters or {},
            "totalRecords": analytics["totalViews"],
        },
        "summary": summary,
        "analytics": analytics,
        "popularPages": popular_pages,
        "visitorFlow": visitor_flow,
        "performanceMetrics": analytics.get("performanceMetrics"),
    }
