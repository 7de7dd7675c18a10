"""Workbook loading, cleaning and filtering."""

from datetime import date

import pandas as pd
import pytest

from analytics import data as dc
from analytics.filters import DateRange, normalize_filters


def test_loads_every_source(data_ctx):
    assert data_ctx["errors"] == {}
    assert data_ctx["latest_date"] == date(2025, 10, 15)
    assert len(data_ctx["sales"]) == 5
    assert len(data_ctx["sessions"]) == 4
    assert len(data_ctx["payroll"]) == 3
    assert len(data_ctx["new_clients"]) == 4
    assert len(data_ctx["leads"]) == 4


def test_columns_are_canonical(data_ctx):
    sales = data_ctx["sales"]
    assert list(sales.columns) == dc.SCHEMAS["sales"][1]
    assert pd.api.types.is_datetime64_any_dtype(sales["date"])
    assert sales["amount"].sum() == 4700
    # no Mrp column in the workbook
    assert sales["mrp"].isna().all()


def test_missing_sheet_only_fails_that_source(tmp_path, sample_sheets, use_data_path, workbook_writer):
    sheets = {k: v for k, v in sample_sheets.items() if k != "Leads"}
    use_data_path(workbook_writer(tmp_path / "partial.xlsx", sheets))
    ctx = dc.load_dashboard_data()
    assert set(ctx["errors"]) == {"leads"}
    assert ctx["leads"].empty
    assert list(ctx["leads"].columns) == dc.SCHEMAS["leads"][1]
    assert len(ctx["sales"]) == 5


def test_no_data_file_reports_every_source(tmp_path, use_data_path):
    use_data_path(tmp_path / "missing.xlsx")
    ctx = dc.load_dashboard_data()
    assert ctx["path"] is None
    assert set(ctx["errors"]) == set(dc.SOURCES)
    assert all(ctx[s].empty for s in dc.SOURCES)


def test_header_row_below_a_title(tmp_path, sample_sheets, use_data_path):
    path = tmp_path / "titled.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, df in sample_sheets.items():
            df.to_excel(writer, sheet_name=name, index=False, startrow=2)
            writer.sheets[name]["A1"] = f"{name} export"
    use_data_path(path)
    ctx = dc.load_dashboard_data()
    assert ctx["errors"] == {}
    assert len(ctx["sales"]) == 5
    assert ctx["sales"]["location"].iloc[0] == "Kwality House"


def test_csv_directory_source(tmp_path, sample_sheets, use_data_path):
    names = {v: k for k, v in dc.SHEET_NAMES.items()}
    for sheet, df in sample_sheets.items():
        df.to_csv(tmp_path / f"{names[sheet]}.csv", index=False)
    use_data_path(tmp_path)
    ctx = dc.load_dashboard_data()
    assert ctx["errors"] == {}
    assert ctx["payroll"]["total_paid"].sum() == 34000


def test_cache_is_reused_until_cleared(data_ctx):
    assert dc.load_dashboard_data() is data_ctx
    dc.clear_cache()
    assert dc.load_dashboard_data() is not data_ctx


def test_clean_source_handles_camel_case_and_currency_text():
    raw = pd.DataFrame(
        {
            "paymentDate": ["2025-10-01", "not a date"],
            "paymentValue": ["₹1,200", "abc"],
            "memberId": [" M1 ", ""],
            "calculatedLocation": ["Kwality House", None],
        }
    )
    df = dc.clean_source(raw, "sales")
    assert df["amount"].tolist()[0] == 1200
    assert pd.isna(df["amount"].iloc[1])
    assert df["member_id"].iloc[0] == "M1"
    assert pd.isna(df["member_id"].iloc[1])
    assert pd.isna(df["date"].iloc[1])
    assert "seller" in df.columns


def test_prepare_context_applies_date_range(october_ctx):
    assert len(october_ctx["sales"]) == 3
    assert len(october_ctx["sales_all_dates"]) == 5
    assert len(october_ctx["sessions"]) == 3
    # payroll is monthly: the October row counts for an October range
    assert len(october_ctx["payroll"]) == 2
    assert october_ctx["previous_range"] == DateRange(date(2025, 8, 31), date(2025, 9, 30))
    assert len(october_ctx["previous_sales"]) == 2


def test_location_filter_reaches_every_source(data_ctx):
    f = normalize_filters({"all_time": True, "locations": ["supreme hq"]})
    ctx = dc.prepare_context(f, data_ctx)
    assert set(ctx["sales"]["location"]) == {"Supreme HQ"}
    assert set(ctx["sessions"]["location"]) == {"Supreme HQ"}
    assert len(ctx["leads"]) == 1
    assert ctx["previous_range"] is None


def test_sales_dimensions_only_filter_sales(data_ctx):
    f = normalize_filters({"all_time": True, "categories": ["Memberships"], "sellers": ["Asha"]})
    ctx = dc.prepare_context(f, data_ctx)
    assert ctx["sales"]["product"].tolist() == ["Annual Membership"]
    assert len(ctx["sessions"]) == 4


def test_filter_date_range_keeps_undated_frames():
    df = pd.DataFrame({"month": [None, None], "total_paid": [1, 2]})
    out = dc.filter_date_range(df, "month", DateRange(date(2025, 10, 1), date(2025, 10, 31)))
    assert len(out) == 2


def test_filter_date_range_drops_undated_rows():
    df = pd.DataFrame({"date": pd.to_datetime(["2025-10-02", None, "2025-09-01"])})
    out = dc.filter_date_range(df, "date", DateRange(date(2025, 10, 1), date(2025, 10, 31)))
    assert len(out) == 1


def test_filter_options(data_ctx):
    opts = dc.filter_options(data_ctx)
    assert opts["locations"] == ["Kwality House", "Supreme HQ"]
    assert opts["categories"] == ["Class Packages", "Memberships"]
    assert opts["payment_methods"] == ["Card", "Cash", "UPI"]
    assert opts["sellers"] == ["Asha", "Ravi"]


@pytest.mark.parametrize("source", dc.SOURCES)
def test_empty_source_has_canonical_columns(source):
    df = dc.empty_source(source)
    assert df.empty
    assert list(df.columns) == dc.SCHEMAS[source][1]


def test_numericize_keeps_first_number_of_currency_text():
    df = pd.DataFrame({"amount": ["Rs. 1,200", "1200", "1.23", "1.2e3", "-50", "abc", None]})
    values = dc.numericize(df, ["amount"])["amount"].tolist()
    assert values[:5] == [1200, 1200, pytest.approx(1.23), 1200, -50]
    assert pd.isna(values[5])
    assert pd.isna(values[6])


def test_header_row_below_a_long_banner(tmp_path, sample_sheets, use_data_path):
    path = tmp_path / "banner.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, df in sample_sheets.items():
            df.to_excel(writer, sheet_name=name, index=False, startrow=15)
            for row in range(1, 15):
                writer.sheets[name].cell(row=row, column=1, value=f"{name} report line {row}")
    use_data_path(path)
    ctx = dc.load_dashboard_data()
    assert ctx["errors"] == {}
    assert len(ctx["sales"]) == 5
