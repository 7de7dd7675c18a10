"""Discount analysis: how much revenue is given away, where, and how it trends."""

from __future__ import annotations

import calendar
from dataclasses import asdict
from typing import Any, Dict, List

import pandas as pd

from analytics.aggregate import Count, Distinct, Ratio, Sum, grouped_reduce, month_of, numeric_column, rank, reduce_totals, safe_div
from analytics.charts import bar_chart, line_chart
from analytics.data import source_errors
from analytics.filters import DashboardFilters
from analytics.metrics_sales import growth_pct, month_label

MAX_TABLE_ROWS = 100

DISCOUNT_RULES = [
    Sum("discount_amount", name="discount"),
    Sum("amount", name="revenue"),
    Sum("gross"),
    Sum("discounted", name="discounted_transactions"),
    Count(name="transactions"),
    Ratio("discount_rate", "discount", "gross", scale=100.0),
]


def with_discount_columns(sales: pd.DataFrame) -> pd.DataFrame:
    if sales.empty:
        return sales.assign(gross=pd.Series(dtype=float), discounted=pd.Series(dtype=int))
    discount = numeric_column(sales, "discount_amount")
    return sales.assign(
        gross=numeric_column(sales, "amount") + discount,
        discounted=(discount > 0).astype(int),
    )


def discount_kpis(sales: pd.DataFrame) -> Dict[str, Any]:
    df = with_discount_columns(sales)
    totals = reduce_totals(df, DISCOUNT_RULES + [Distinct("member_id", name="members")])
    discounted = df[df["discounted"] == 1] if not df.empty else df
    only = reduce_totals(discounted, [Sum("discount_amount", name="discount"), Sum("gross"), Distinct("member_id", name="members")])
    totals["discount_penetration"] = safe_div(totals["discounted_transactions"], totals["transactions"], 100.0)
    totals["avg_discount_percent"] = safe_div(only["discount"], only["gross"], 100.0)
    totals["avg_discount_per_transaction"] = safe_div(only["discount"], totals["discounted_transactions"])
    totals["discounted_members"] = only["members"]
    return totals


def month_on_month(sales: pd.DataFrame) -> List[Dict[str, Any]]:
    rows = grouped_reduce(with_discount_columns(sales), month_of("date"), DISCOUNT_RULES, key_name="month_key")
    rows = sorted((r for r in rows if r["month_key"] != "Unknown"), key=lambda r: r["month_key"])
    prev = None
    for r in rows:
        r["month"] = month_label(r["month_key"])
        r["discount_change"] = growth_pct(r["discount"], prev["discount"]) if prev else 0.0
        prev = r
    return rows


def year_on_year(sales: pd.DataFrame) -> Dict[str, Any]:
    """Discount per calendar month with one column per year."""
    monthly = month_on_month(sales)
    years = sorted({r["month_key"][:4] for r in monthly})
    by_key = {r["month_key"]: r["discount"] for r in monthly}
    table = []
    for m in range(1, 13):
        row: Dict[str, Any] = {"month": calendar.month_abbr[m]}
        for y in years:
            row[y] = by_key.get(f"{y}-{m:02d}", 0)
        if len(years) >= 2:
            row["yoy_change"] = growth_pct(row[years[-1]], row[years[-2]])
        if any(row[y] for y in years):
            table.append(row)
    return {"years": years, "rows": table}


def discounted_transactions(sales: pd.DataFrame, limit: int = MAX_TABLE_ROWS) -> List[Dict[str, Any]]:
    df = with_discount_columns(sales)
    if df.empty:
        return []
    df = df[df["discounted"] == 1]
    df = df.assign(discount_amount=numeric_column(df, "discount_amount"))
    cols = [c for c in ["date", "member_id", "product", "category", "location", "seller", "amount", "discount_amount"] if c in df.columns]
    return df.sort_values("discount_amount", ascending=False, kind="stable")[cols].head(limit).to_dict(orient="records")


def compute_discounts(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    sales: pd.DataFrame = ctx.get("sales", pd.DataFrame())
    history: pd.DataFrame = ctx.get("sales_all_dates", pd.DataFrame())

    df = with_discount_columns(sales)
    discounted = df[df["discounted"] == 1] if not df.empty else df
    by_product = grouped_reduce(discounted, "product", DISCOUNT_RULES, fallback="Unknown Product")
    by_category = grouped_reduce(discounted, "category", DISCOUNT_RULES, rank_by="discount")
    by_location = grouped_reduce(discounted, "location", DISCOUNT_RULES, rank_by="discount")
    top = rank(by_product, "discount", filters.top_n)
    bottom = rank(by_product, "discount", filters.top_n, ascending=True)
    mom = month_on_month(history)

    return {
        "filters": asdict(filters),
        "kpis": discount_kpis(sales),
        "top_products": top,
        "bottom_products": bottom,
        "by_category": by_category,
        "by_location": by_location,
        "month_on_month": mom,
        "year_on_year": year_on_year(history),
        "transactions": discounted_transactions(sales),
        "charts": {
            "top_products": bar_chart(top, x="product", y="discount", horizontal=True, tooltip=["discount_rate"]),
            "by_category": bar_chart(by_category, x="category", y="discount"),
            "monthly_discount": line_chart(mom, x="month", y="discount"),
        },
        "errors": source_errors(ctx, ["sales"]),
    }
