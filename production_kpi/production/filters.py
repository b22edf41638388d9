from __future__ import annotations

import calendar
from datetime import date, datetime
from typing import Any

from production_kpi.domain.contracts import KpiFilter
from production_kpi.errors import ValidationError


def _parse_date_arg(args: Any, name: str) -> date | None:
    raw = str(args.get(name) or "").strip()
    if not raw:
        return None
    try:
        return datetime.strptime(raw[:10], "%Y-%m-%d").date()
    except ValueError as exc:
        raise ValidationError(
            code="date_invalid",
            message_key="date_invalid",
            details=f"{name}={raw!r}",
            payload={"field": name},
        ) from exc


def _parse_int(value: Any, default: int, min_value: int, max_value: int) -> int:
    if value in (None, ""):
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return max(min_value, min(parsed, max_value))


def _date_range(args: Any) -> tuple[date | None, date | None]:
    start_date = _parse_date_arg(args, "from")
    end_date = _parse_date_arg(args, "to")
    if start_date and end_date and start_date > end_date:
        start_date, end_date = end_date, start_date
    return start_date, end_date


def parse_kpi_filters(args: Any, *, default_page_size: int = 20, max_page_size: int = 100) -> KpiFilter:
    """Filter for the order KPI list and export: from, to, q, page, pageSize."""
    start_date, end_date = _date_range(args)
    page_size_raw = args.get("pageSize")
    if page_size_raw in (None, ""):
        page_size_raw = args.get("page_size")
    return KpiFilter(
        date_from=start_date,
        date_to=end_date,
        q=str(args.get("q") or "").strip(),
        page=_parse_int(args.get("page"), default=1, min_value=1, max_value=1_000_000),
        page_size=_parse_int(page_size_raw, default=default_page_size, min_value=1, max_value=max_page_size),
    )


def parse_date_range_filters(args: Any) -> KpiFilter:
    start_date, end_date = _date_range(args)
    return KpiFilter(date_from=start_date, date_to=end_date)


def parse_calendar_filters(args: Any) -> KpiFilter:
    """Explicit from/to wins; otherwise year (and optional month) spans the range."""
    if args.get("from") or args.get("to"):
        return parse_date_range_filters(args)

    raw_year = str(args.get("year") or "").strip()
    raw_month = str(args.get("month") or "").strip()
    if not raw_year:
        if raw_month:
            raise ValidationError(code="year_invalid", message_key="year_invalid", details="month without year")
        return KpiFilter()
    if not (raw_year.isdigit() and len(raw_year) == 4 and int(raw_year) >= 1):
        raise ValidationError(code="year_invalid", message_key="year_invalid", details=f"year={raw_year!r}")
    year = int(raw_year)

    if not raw_month:
        return KpiFilter(date_from=date(year, 1, 1), date_to=date(year, 12, 31))
    if not raw_month.isdigit() or not 1 <= int(raw_month) <= 12:
        raise ValidationError(code="month_invalid", message_key="month_invalid", details=f"month={raw_month!r}")
    month = int(raw_month)
    last_day = calendar.monthrange(year, month)[1]
    return KpiFilter(date_from=date(year, month, 1), date_to=date(year, month, last_day))
