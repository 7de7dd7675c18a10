from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

import pandas as pd

DEFAULT_TOP_N = 5
MAX_TOP_N = 50
ALL_TOKENS = {"all", "all locations", "all categories", "all products", "all sellers", "all methods"}


@dataclass(frozen=True)
class DateRange:
    start: Optional[date] = None
    end: Optional[date] = None

    @property
    def bounded(self) -> bool:
        return self.start is not None and self.end is not None

    def label(self) -> str:
        if self.start is None and self.end is None:
            return "All time"
        start = self.start.isoformat() if self.start else "…"
        end = self.end.isoformat() if self.end else "…"
        return f"{start} – {end}"


@dataclass(frozen=True)
class DashboardFilters:
    date_range: DateRange = field(default_factory=DateRange)
    locations: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    products: List[str] = field(default_factory=list)
    sellers: List[str] = field(default_factory=list)
    payment_methods: List[str] = field(default_factory=list)
    top_n: int = DEFAULT_TOP_N


def _as_date(value: object) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = pd.to_datetime(str(value), errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


def _as_str_list(values: Optional[Iterable[object]]) -> List[str]:
    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    out: List[str] = []
    for v in values:
        if v is None:
            continue
        s = str(v).strip()
        if not s or s.lower() in ALL_TOKENS:
            continue
        out.append(s)
    return out


def previous_month_range(reference: Optional[date] = None) -> DateRange:
    reference = reference or date.today()
    first_this_month = reference.replace(day=1)
    last_prev = first_this_month - timedelta(days=1)
    return DateRange(start=last_prev.replace(day=1), end=last_prev)


def previous_period(current: DateRange) -> Optional[DateRange]:
    """Equal-length window ending the day before `current.start`."""
    if not current.bounded:
        return None
    length = (current.end - current.start).days
    end = current.start - timedelta(days=1)
    return DateRange(start=end - timedelta(days=length), end=end)


def normalize_filters(raw: dict, *, reference_date: Optional[date] = None) -> DashboardFilters:
    raw = raw or {}

    start = _as_date(raw.get("start_date"))
    end = _as_date(raw.get("end_date"))
    if raw.get("all_time"):
        date_range = DateRange()
    elif start is None and end is None:
        date_range = previous_month_range(reference_date)
    else:
        if start is not None and end is not None and start > end:
            start, end = end, start
        date_range = DateRange(start=start, end=end)

    top_n = raw.get("top_n", DEFAULT_TOP_N)
    try:
        top_n = int(top_n)
    except (TypeError, ValueError):
        top_n = DEFAULT_TOP_N
    top_n = max(1, min(MAX_TOP_N, top_n))

    return DashboardFilters(
        date_range=date_range,
        locations=_as_str_list(raw.get("locations")),
        categories=_as_str_list(raw.get("categories")),
        products=_as_str_list(raw.get("products")),
        sellers=_as_str_list(raw.get("sellers")),
        payment_methods=_as_str_list(raw.get("payment_methods")),
        top_n=top_n,
    )
