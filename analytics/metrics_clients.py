from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import pandas as pd

from analytics.aggregate import Count, Mean, Ratio, Sum, flag_column, grouped_reduce, month_of, reduce_totals
from analytics.charts import arc_chart, bar_chart, line_chart
from analytics.data import source_errors
from analytics.filters import DashboardFilters
from analytics.metrics_sales import month_label

CLIENT_RULES = [
    Count(name="new_clients"),
    Sum("converted"),
    Sum("retained"),
    Sum("ltv", name="total_ltv"),
    Mean("ltv", name="avg_ltv"),
    Ratio("conversion_rate", "converted", "new_clients", scale=100.0),
    Ratio("retention_rate", "retained", "new_clients", scale=100.0),
]


def with_status_flags(clients: pd.DataFrame) -> pd.DataFrame:
    if clients.empty:
        return clients
    return clients.assign(
        converted=flag_column(clients, "conversion_status", "Converted"),
        retained=flag_column(clients, "retention_status", "Retained"),
    )


def client_kpis(clients: pd.DataFrame) -> Dict[str, Any]:
    return reduce_totals(with_status_flags(clients), CLIENT_RULES)


def clients_by_month(clients: pd.DataFrame) -> List[Dict[str, Any]]:
    rows = grouped_reduce(with_status_flags(clients), month_of("first_visit_date"), CLIENT_RULES, key_name="month_key")
    rows = sorted((r for r in rows if r["month_key"] != "Unknown"), key=lambda r: r["month_key"])
    for r in rows:
        r["month"] = month_label(r["month_key"])
    return rows


def compute_clients(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    clients = with_status_flags(ctx.get("new_clients", pd.DataFrame()))
    history = ctx.get("new_clients_all_dates", pd.DataFrame())

    by_location = grouped_reduce(clients, "location", CLIENT_RULES, rank_by="new_clients")
    conversion_mix = grouped_reduce(clients, "conversion_status", [Count(name="clients")], rank_by="clients")
    retention_mix = grouped_reduce(clients, "retention_status", [Count(name="clients")], rank_by="clients")
    trend = clients_by_month(history)

    return {
        "filters": asdict(filters),
        "kpis": client_kpis(clients),
        "by_location": by_location,
        "conversion_mix": conversion_mix,
        "retention_mix": retention_mix,
        "monthly_trend": trend,
        "charts": {
            "conversion_by_location": bar_chart(by_location, x="location", y="conversion_rate", y_format=".1f", axis_format=".0f"),
            "conversion_mix": arc_chart(conversion_mix, category="conversion_status", value="clients"),
            "ltv_trend": line_chart(trend, x="month", y="avg_ltv"),
        },
        "errors": source_errors(ctx, ["new_clients"]),
    }
