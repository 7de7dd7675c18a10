"""
Shared fixtures: a small studio workbook written with openpyxl, the loaded
data context, and filters pinned to October 2025.

The latest sales payment in the workbook is 2025-10-15, so requests without
dates fall back to September 2025.
"""

from datetime import date

import pandas as pd
import pytest

from analytics import data as dc
from analytics.filters import normalize_filters


def _sales() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Payment Date": pd.to_datetime(["2025-10-05", "2025-10-10", "2025-10-15", "2025-09-12", "2025-09-20"]),
            "Payment Value": [1000, 500, 2000, 800, 400],
            "Payment VAT": [180, 90, 360, 144, 72],
            "Member ID": ["M1", "M2", "M1", "M3", "M2"],
            "Cleaned Product": ["Studio 8 Pack", "Single Class", "Annual Membership", "Studio 8 Pack", "Single Class"],
            "Cleaned Category": ["Class Packages", "Class Packages", "Memberships", "Class Packages", "Class Packages"],
            "Calculated Location": ["Kwality House", "Supreme HQ", "Kwality House", "Kwality House", "Supreme HQ"],
            "Payment Method": ["Card", "UPI", "Card", "Cash", "UPI"],
            "Sold By": ["Asha", "Ravi", "Asha", "Ravi", "Asha"],
            "Discount Amount": [0, 100, 500, 0, 50],
        }
    )


def _sessions() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Date": pd.to_datetime(["2025-10-02", "2025-10-03", "2025-10-09", "2025-09-15"]),
            "Cleaned Class": ["PowerCycle 45", "Barre 57", "PowerCycle 45", "Barre 57"],
            "Location": ["Kwality House", "Supreme HQ", "Kwality House", "Kwality House"],
            "Teacher Name": ["Asha", "Ravi", "Asha", "Ravi"],
            "Checked In Count": [10, 15, 20, 5],
            "Capacity": [20, 20, 20, 10],
        }
    )


def _payroll() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Teacher ID": ["T1", "T2", "T1"],
            "Teacher Name": ["Asha", "Ravi", "Asha"],
            "Location": ["Kwality House", "Supreme HQ", "Supreme HQ"],
            "Month Year": pd.to_datetime(["2025-10-01", "2025-10-01", "2025-09-01"]),
            "Total Sessions": [10, 5, 4],
            "Total Customers": [100, 40, 30],
            "Total Paid": [20000, 8000, 6000],
        }
    )


def _new_clients() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "First Visit Date": pd.to_datetime(["2025-10-03", "2025-10-08", "2025-10-20", "2025-09-10"]),
            "Member ID": ["M10", "M11", "M12", "M13"],
            "Home Location": ["Kwality House", "Kwality House", "Supreme HQ", "Supreme HQ"],
            "Conversion Status": ["Converted", "Not Converted", "Converted", "Converted"],
            "Retention Status": ["Retained", "Not Retained", "Not Retained", "Retained"],
            "LTV": [5000, 0, 3000, 4000],
        }
    )


def _leads() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Created At": pd.to_datetime(["2025-10-01", "2025-10-02", "2025-10-05", "2025-10-07"]),
            "Source": ["Instagram", "Instagram", "Website", "Referral"],
            "Stage": ["Trial Booked", "Contacted", "Trial Booked", "New"],
            "Status": ["Converted", "Open", "Converted", "Lost"],
            "Center": ["Kwality House", "Kwality House", "Supreme HQ", None],
        }
    )


@pytest.fixture()
def sample_sheets():
    """Sheet name -> frame, keyed the way the workbook names its tabs."""
    return {
        "Sales": _sales(),
        "Sessions": _sessions(),
        "Payroll": _payroll(),
        "New Clients": _new_clients(),
        "Leads": _leads(),
    }


def write_workbook(path, sheets):
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, df in sheets.items():
            df.to_excel(writer, sheet_name=name, index=False)
    return path


@pytest.fixture()
def workbook_writer():
    return write_workbook


@pytest.fixture()
def workbook(tmp_path, sample_sheets):
    return write_workbook(tmp_path / "studio.xlsx", sample_sheets)


@pytest.fixture()
def use_data_path(monkeypatch):
    """Point the loader at a path and start from a cold cache."""

    def _use(path):
        monkeypatch.setenv("STUDIO_DATA_PATH", str(path))
        dc.clear_cache()

    yield _use
    dc.clear_cache()


@pytest.fixture()
def data_ctx(workbook, use_data_path):
    use_data_path(workbook)
    return dc.load_dashboard_data()


@pytest.fixture()
def october():
    return normalize_filters({"start_date": "2025-10-01", "end_date": "2025-10-31"})


@pytest.fixture()
def october_ctx(october, data_ctx):
    return dc.prepare_context(october, data_ctx)


@pytest.fixture()
def empty_ctx(october):
    return dc.prepare_context(october, {"errors": {}})


@pytest.fixture()
def reference_date():
    return date(2025, 10, 15)
