from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import pandas as pd

from analytics.aggregate import Distinct, Ratio, Sum, grouped_reduce, key_column, reduce_totals, safe_div
from analytics.charts import bar_chart
from analytics.data import source_errors
from analytics.filters import DashboardFilters

PAYOUT_RULES = [
    Sum("total_paid"),
    Sum("total_sessions"),
    Sum("total_customers"),
    Ratio("pay_per_session", "total_paid", "total_sessions"),
    Ratio("customers_per_session", "total_customers", "total_sessions"),
]


def trainer_kpis(payroll: pd.DataFrame) -> Dict[str, Any]:
    totals = reduce_totals(
        payroll,
        [Distinct("trainer_name", name="unique_trainers"), Sum("total_paid"), Sum("total_sessions"), Sum("total_customers")],
    )
    totals["avg_pay_per_trainer"] = safe_div(totals["total_paid"], totals["unique_trainers"])
    totals["productivity"] = safe_div(totals["total_paid"], totals["total_sessions"])
    return totals


def _primary_locations(payroll: pd.DataFrame) -> Dict[str, str]:
    if payroll.empty or "location" not in payroll.columns:
        return {}
    tmp = pd.DataFrame(
        {
            "trainer_name": key_column(payroll, "trainer_name"),
            "location": payroll["location"].astype("string"),
        }
    )
    modes = (
        tmp.groupby("trainer_name", sort=False)["location"]
        .apply(lambda s: (s.dropna().mode().iloc[0] if not s.dropna().empty else "Unknown"))
    )
    return {str(k): str(v) for k, v in modes.items()}


def top_trainers(payroll: pd.DataFrame, top_n: int) -> List[Dict[str, Any]]:
    rows = grouped_reduce(payroll, "trainer_name", PAYOUT_RULES, rank_by="total_paid", top_n=top_n)
    locations = _primary_locations(payroll)
    for row in rows:
        row["location"] = locations.get(row["trainer_name"], "Unknown")
    return rows


def compute_trainers(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    payroll: pd.DataFrame = ctx.get("payroll", pd.DataFrame())

    payouts = top_trainers(payroll, filters.top_n)
    by_location = grouped_reduce(
        payroll,
        "location",
        [Distinct("trainer_name", name="trainers")] + PAYOUT_RULES,
        rank_by="total_paid",
    )
    return {
        "filters": asdict(filters),
        "kpis": trainer_kpis(payroll),
        "top_trainers": payouts,
        "by_location": by_location,
        "charts": {
            "payout_by_trainer": bar_chart(payouts, x="trainer_name", y="total_paid", horizontal=True, tooltip=["total_sessions", "total_customers"]),
            "payout_by_location": bar_chart(by_location, x="location", y="total_paid", tooltip=["trainers"]),
        },
        "errors": source_errors(ctx, ["payroll"]),
    }
