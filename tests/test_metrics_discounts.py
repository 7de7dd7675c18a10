import pandas as pd
import pytest

from analytics.metrics_discounts import compute_discounts, discount_kpis, year_on_year


def test_discount_kpis(october_ctx):
    k = discount_kpis(october_ctx["sales"])
    assert k["discount"] == 600
    assert k["gross"] == 4100
    assert k["transactions"] == 3
    assert k["discounted_transactions"] == 2
    assert k["discount_rate"] == pytest.approx(600 / 4100 * 100)
    assert k["discount_penetration"] == pytest.approx(200 / 3)
    assert k["avg_discount_percent"] == pytest.approx(600 / 3100 * 100)
    assert k["avg_discount_per_transaction"] == pytest.approx(300.0)
    assert k["discounted_members"] == 2


def test_discounts_page(october, october_ctx):
    result = compute_discounts(october, october_ctx)
    assert [r["product"] for r in result["top_products"]] == ["Annual Membership", "Single Class"]
    assert result["bottom_products"][0]["product"] == "Single Class"
    assert [t["discount_amount"] for t in result["transactions"]] == [500, 100]


def test_month_on_month_change(october, october_ctx):
    mom = compute_discounts(october, october_ctx)["month_on_month"]
    assert [r["month_key"] for r in mom] == ["2025-09", "2025-10"]
    assert mom[0]["discount_change"] == 0.0
    assert mom[1]["discount_change"] == pytest.approx((600 - 50) / 50 * 100)


def test_year_on_year_single_year(data_ctx):
    yoy = year_on_year(data_ctx["sales"])
    assert yoy["years"] == ["2025"]
    assert [r["month"] for r in yoy["rows"]] == ["Sep", "Oct"]
    assert "yoy_change" not in yoy["rows"][0]


def test_year_on_year_compares_latest_two_years(data_ctx):
    sales = data_ctx["sales"]
    earlier = sales.assign(date=sales["date"] - pd.DateOffset(years=1))
    rows = {r["month"]: r for r in year_on_year(pd.concat([earlier, sales], ignore_index=True))["rows"]}
    assert rows["Oct"]["2024"] == 600
    assert rows["Oct"]["2025"] == 600
    assert rows["Oct"]["yoy_change"] == 0.0


def test_empty_discounts(october, empty_ctx):
    result = compute_discounts(october, empty_ctx)
    assert result["kpis"]["discount_rate"] == 0
    assert result["transactions"] == []
    assert result["year_on_year"] == {"years": [], "rows": []}
