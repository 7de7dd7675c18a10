"""Executive summary: headline KPIs from every source on one page.

Canonical formulas (several dashboard variants disagreed):
fill rate = checked in / capacity * 100, average attendance = checked in /
sessions, growth = % change against the previous equal-length period.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import pandas as pd

from analytics.aggregate import Count, Distinct, Ratio, Sum, grouped_reduce
from analytics.charts import bar_chart, line_chart
from analytics.data import SOURCES, source_errors
from analytics.filters import DashboardFilters
from analytics.metrics_clients import client_kpis
from analytics.metrics_leads import lead_kpis
from analytics.metrics_sales import monthly_revenue, sales_kpis, top_products
from analytics.metrics_sessions import session_kpis
from analytics.metrics_trainers import top_trainers, trainer_kpis

EXEC_TOP_N = 5
TREND_MONTHS = 6


def location_performance(sales: pd.DataFrame, sessions: pd.DataFrame) -> List[Dict[str, Any]]:
    sales_rows = grouped_reduce(
        sales, "location", [Sum("amount", name="revenue"), Distinct("member_id", name="clients")]
    )
    session_rows = grouped_reduce(
        sessions,
        "location",
        [Count(name="sessions"), Sum("checked_in"), Sum("capacity"), Ratio("fill_rate", "checked_in", "capacity", scale=100.0)],
    )
    merged: Dict[str, Dict[str, Any]] = {}
    for row in sales_rows:
        merged[row["location"]] = {"location": row["location"], "revenue": row["revenue"], "clients": row["clients"], "sessions": 0, "fill_rate": 0.0}
    for row in session_rows:
        entry = merged.setdefault(row["location"], {"location": row["location"], "revenue": 0, "clients": 0})
        entry["sessions"] = row["sessions"]
        entry["fill_rate"] = row["fill_rate"]
    return list(merged.values())


def compute_executive_summary(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    sales: pd.DataFrame = ctx.get("sales", pd.DataFrame())
    sessions: pd.DataFrame = ctx.get("sessions", pd.DataFrame())
    payroll: pd.DataFrame = ctx.get("payroll", pd.DataFrame())
    clients: pd.DataFrame = ctx.get("new_clients", pd.DataFrame())
    leads: pd.DataFrame = ctx.get("leads", pd.DataFrame())
    previous_range = ctx.get("previous_range")

    sales_summary = sales_kpis(sales, ctx.get("previous_sales") if previous_range is not None else None)
    locations = location_performance(sales, sessions)
    trend = monthly_revenue(ctx.get("sales_all_dates", pd.DataFrame()), months=TREND_MONTHS)
    products = top_products(sales, EXEC_TOP_N)
    trainers = top_trainers(payroll, EXEC_TOP_N)
    session_summary = session_kpis(sessions)
    client_summary = client_kpis(clients)

    period = filters.date_range
    return {
        "filters": asdict(filters),
        "period": {
            "start": period.start,
            "end": period.end,
            "label": period.label(),
            "previous": previous_range.label() if previous_range is not None else None,
        },
        "hero": {
            "revenue": sales_summary["revenue"],
            "sessions": session_summary["sessions"],
            "new_clients": client_summary["new_clients"],
        },
        "sales": sales_summary,
        "sessions": session_summary,
        "trainers": trainer_kpis(payroll),
        "clients": client_summary,
        "leads": lead_kpis(leads),
        "locations": locations,
        "revenue_trend": trend,
        "top_products": products,
        "top_trainers": trainers,
        "charts": {
            "revenue_trend": line_chart(trend, x="month", y="revenue"),
            "location_revenue": bar_chart(locations, x="location", y="revenue", tooltip=["sessions", "fill_rate"]),
            "top_products": bar_chart(products, x="product", y="revenue", horizontal=True),
        },
        "errors": source_errors(ctx, SOURCES),
    }
