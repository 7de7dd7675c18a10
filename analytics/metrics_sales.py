from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

import pandas as pd

from analytics.aggregate import Count, Distinct, Mean, Sum, grouped_reduce, month_of, reduce_totals, safe_div
from analytics.charts import arc_chart, bar_chart, line_chart
from analytics.data import source_errors
from analytics.filters import DashboardFilters

SALES_TOTALS = [
    Sum("amount", name="revenue"),
    Count(name="transactions"),
    Distinct("member_id", name="members"),
    Sum("vat", name="vat"),
    Sum("discount_amount", name="discount_impact"),
]

BREAKDOWN_RULES = [
    Sum("amount", name="revenue"),
    Count(name="transactions"),
    Distinct("member_id", name="clients"),
    Mean("amount", name="avg_value"),
]


def growth_pct(current: Any, previous: Any) -> float:
    return safe_div(float(current or 0) - float(previous or 0), previous, 100.0)


def sales_kpis(sales: pd.DataFrame, previous: Optional[pd.DataFrame] = None) -> Dict[str, Any]:
    totals = reduce_totals(sales, SALES_TOTALS)
    totals["avg_order_value"] = safe_div(totals["revenue"], totals["transactions"])
    if previous is not None:
        prev = reduce_totals(previous, SALES_TOTALS)
        totals["revenue_growth"] = growth_pct(totals["revenue"], prev["revenue"])
        totals["transaction_growth"] = growth_pct(totals["transactions"], prev["transactions"])
        totals["member_growth"] = growth_pct(totals["members"], prev["members"])
    else:
        totals["revenue_growth"] = 0.0
        totals["transaction_growth"] = 0.0
        totals["member_growth"] = 0.0
    return totals


def month_label(key: str) -> str:
    ts = pd.to_datetime(f"{key}-01", errors="coerce")
    return key if pd.isna(ts) else ts.strftime("%b %y")


def monthly_revenue(sales: pd.DataFrame, months: Optional[int] = 6) -> List[Dict[str, Any]]:
    """Revenue, transactions and distinct clients per calendar month, oldest first."""
    rows = grouped_reduce(
        sales,
        month_of("date"),
        [Sum("amount", name="revenue"), Count(name="transactions"), Distinct("member_id", name="clients")],
        key_name="month_key",
    )
    rows = sorted((r for r in rows if r["month_key"] != "Unknown"), key=lambda r: r["month_key"])
    if months is not None:
        rows = rows[-months:]
    for r in rows:
        r["month"] = month_label(r["month_key"])
    return rows


def top_products(sales: pd.DataFrame, top_n: int) -> List[Dict[str, Any]]:
    return grouped_reduce(
        sales,
        "product",
        [Sum("amount", name="revenue"), Count(name="transactions")],
        fallback="Unknown Product",
        rank_by="revenue",
        top_n=top_n,
    )


def compute_sales(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    sales: pd.DataFrame = ctx.get("sales", pd.DataFrame())
    previous: pd.DataFrame = ctx.get("previous_sales", pd.DataFrame())
    history: pd.DataFrame = ctx.get("sales_all_dates", pd.DataFrame())

    kpis = sales_kpis(sales, previous if ctx.get("previous_range") is not None else None)
    by_location = grouped_reduce(sales, "location", BREAKDOWN_RULES, rank_by="revenue")
    by_category = grouped_reduce(sales, "category", BREAKDOWN_RULES, rank_by="revenue")
    by_payment_method = grouped_reduce(sales, "payment_method", BREAKDOWN_RULES, rank_by="revenue")
    by_seller = grouped_reduce(sales, "seller", BREAKDOWN_RULES, rank_by="revenue", top_n=filters.top_n)
    products = top_products(sales, filters.top_n)
    trend = monthly_revenue(history, months=12)

    charts = {
        "revenue_by_location": bar_chart(by_location, x="location", y="revenue", tooltip=["transactions", "clients"]),
        "revenue_by_category": arc_chart(by_category, category="category", value="revenue"),
        "payment_methods": arc_chart(by_payment_method, category="payment_method", value="revenue"),
        "top_products": bar_chart(products, x="product", y="revenue", horizontal=True),
        "monthly_trend": line_chart(trend, x="month", y="revenue"),
    }
    return {
        "filters": asdict(filters),
        "kpis": kpis,
        "by_location": by_location,
        "by_category": by_category,
        "by_payment_method": by_payment_method,
        "by_seller": by_seller,
        "top_products": products,
        "monthly_trend": trend,
        "charts": charts,
        "errors": source_errors(ctx, ["sales"]),
    }
