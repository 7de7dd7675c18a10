from dataclasses import replace

import pytest

from analytics.data import prepare_context
from analytics.filters import normalize_filters
from analytics.metrics_executive import compute_executive_summary, location_performance


def test_hero_and_period(october, october_ctx):
    result = compute_executive_summary(october, october_ctx)
    assert result["hero"] == {"revenue": 3500, "sessions": 3, "new_clients": 3}
    assert result["period"]["label"] == "2025-10-01 – 2025-10-31"
    assert result["period"]["previous"] == "2025-08-31 – 2025-09-30"
    assert result["errors"] == {}


def test_sections_reuse_page_kpis(october, october_ctx):
    result = compute_executive_summary(october, october_ctx)
    assert result["sessions"]["fill_rate"] == pytest.approx(75.0)
    assert result["trainers"]["total_paid"] == 28000
    assert result["leads"]["conversion_rate"] == pytest.approx(50.0)
    assert result["sales"]["revenue_growth"] == pytest.approx((3500 - 1200) / 1200 * 100)


def test_location_performance_merges_sales_and_sessions(october_ctx):
    rows = {r["location"]: r for r in location_performance(october_ctx["sales"], october_ctx["sessions"])}
    assert rows["Kwality House"]["revenue"] == 3000
    assert rows["Kwality House"]["sessions"] == 2
    assert rows["Kwality House"]["fill_rate"] == pytest.approx(75.0)
    assert rows["Supreme HQ"]["revenue"] == 500


def test_location_only_in_sessions_gets_zero_revenue(october_ctx):
    sessions = october_ctx["sessions"].assign(location="Annex")
    rows = {r["location"]: r for r in location_performance(october_ctx["sales"], sessions)}
    assert rows["Annex"]["revenue"] == 0
    assert rows["Kwality House"]["sessions"] == 0


def test_top_lists_are_fixed_at_five(october, october_ctx):
    result = compute_executive_summary(replace(october, top_n=1), october_ctx)
    assert len(result["top_products"]) == 3
    assert len(result["top_trainers"]) == 2


def test_all_time_has_no_previous_period(data_ctx):
    f = normalize_filters({"all_time": True})
    result = compute_executive_summary(f, prepare_context(f, data_ctx))
    assert result["period"]["label"] == "All time"
    assert result["period"]["previous"] is None
    assert result["hero"]["revenue"] == 4700
    assert result["sales"]["revenue_growth"] == 0.0


def test_errors_cover_failed_sources(october, october_ctx):
    ctx = dict(october_ctx, errors={"leads": "Sheet 'Leads' not found"})
    assert compute_executive_summary(october, ctx)["errors"] == {"leads": "Sheet 'Leads' not found"}
