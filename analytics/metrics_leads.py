from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from analytics.aggregate import Count, Ratio, Sum, flag_column, grouped_reduce, reduce_totals
from analytics.charts import arc_chart, bar_chart
from analytics.data import source_errors
from analytics.filters import DashboardFilters

TOP_SOURCES = 4

LEAD_RULES = [
    Count(name="leads"),
    Sum("converted"),
    Ratio("conversion_rate", "converted", "leads", scale=100.0),
]


def with_conversion_flag(leads: pd.DataFrame) -> pd.DataFrame:
    if leads.empty:
        return leads
    return leads.assign(converted=flag_column(leads, "status", "Converted"))


def lead_kpis(leads: pd.DataFrame) -> Dict[str, Any]:
    return reduce_totals(with_conversion_flag(leads), LEAD_RULES)


def compute_leads(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    leads = with_conversion_flag(ctx.get("leads", pd.DataFrame()))

    by_source = grouped_reduce(leads, "source", LEAD_RULES, rank_by="leads")
    by_stage = grouped_reduce(leads, "stage", LEAD_RULES)
    by_status = grouped_reduce(leads, "status", [Count(name="leads")], rank_by="leads")
    by_location = grouped_reduce(leads, "location", LEAD_RULES, rank_by="leads")

    return {
        "filters": asdict(filters),
        "kpis": lead_kpis(leads),
        "top_sources": by_source[:TOP_SOURCES],
        "by_source": by_source,
        "by_stage": by_stage,
        "by_status": by_status,
        "by_location": by_location,
        "charts": {
            "conversion_by_source": bar_chart(by_source[:TOP_SOURCES], x="source", y="conversion_rate", y_format=".1f", axis_format=".0f", tooltip=["leads"]),
            "stage_funnel": bar_chart(by_stage, x="stage", y="leads", horizontal=True),
            "status_mix": arc_chart(by_status, category="status", value="leads"),
        },
        "errors": source_errors(ctx, ["leads"]),
    }
