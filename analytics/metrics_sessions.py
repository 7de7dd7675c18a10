from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from analytics.aggregate import Count, Ratio, Sum, grouped_reduce, rank, reduce_totals
from analytics.charts import bar_chart
from analytics.data import source_errors
from analytics.filters import DashboardFilters

TOP_CLASSES = 6

ATTENDANCE_RULES = [
    Count(name="sessions"),
    Sum("checked_in"),
    Sum("capacity"),
    Ratio("fill_rate", "checked_in", "capacity", scale=100.0),
    Ratio("avg_attendance", "checked_in", "sessions"),
]


def _class_count(sessions: pd.DataFrame, token: str) -> int:
    if sessions.empty or "class_type" not in sessions.columns:
        return 0
    return int(sessions["class_type"].astype("string").str.lower().str.contains(token, regex=False).fillna(False).sum())


def session_kpis(sessions: pd.DataFrame) -> Dict[str, Any]:
    totals = reduce_totals(sessions, ATTENDANCE_RULES)
    totals["powercycle_sessions"] = _class_count(sessions, "powercycle")
    totals["barre_sessions"] = _class_count(sessions, "barre")
    return totals


def compute_sessions(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    sessions: pd.DataFrame = ctx.get("sessions", pd.DataFrame())

    kpis = session_kpis(sessions)
    by_class = grouped_reduce(sessions, "class_type", ATTENDANCE_RULES, rank_by="sessions")
    top_classes = rank(by_class, "fill_rate", TOP_CLASSES)
    by_location = grouped_reduce(sessions, "location", ATTENDANCE_RULES, rank_by="checked_in")
    by_trainer = grouped_reduce(
        sessions, "trainer", ATTENDANCE_RULES, rank_by="checked_in", top_n=filters.top_n
    )

    return {
        "filters": asdict(filters),
        "kpis": kpis,
        "by_class": by_class,
        "top_classes": top_classes,
        "by_location": by_location,
        "by_trainer": by_trainer,
        "charts": {
            "fill_rate_by_class": bar_chart(top_classes, x="class_type", y="fill_rate", y_format=".1f", axis_format=".0f"),
            "attendance_by_location": bar_chart(by_location, x="location", y="checked_in", tooltip=["sessions", "fill_rate"]),
        },
        "errors": source_errors(ctx, ["sessions"]),
    }
