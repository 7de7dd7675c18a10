from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from analytics.filters import DashboardFilters, DateRange, normalize_filters, previous_period

logger = logging.getLogger(__name__)

DATA_DIR = Path(os.environ.get("STUDIO_DATA_DIR", Path(__file__).resolve().parents[1] / "data"))
FILE_GLOB = "*.xlsx"

SOURCES = ("sales", "sessions", "payroll", "new_clients", "leads")

SHEET_NAMES = {
    "sales": "Sales",
    "sessions": "Sessions",
    "payroll": "Payroll",
    "new_clients": "New Clients",
    "leads": "Leads",
}

SALES_COLUMNS = {
    "Payment Date": "date",
    "paymentDate": "date",
    "Payment Value": "amount",
    "paymentValue": "amount",
    "Payment VAT": "vat",
    "paymentVAT": "vat",
    "Member ID": "member_id",
    "memberId": "member_id",
    "Cleaned Product": "product",
    "cleanedProduct": "product",
    "Cleaned Category": "category",
    "cleanedCategory": "category",
    "Calculated Location": "location",
    "calculatedLocation": "location",
    "Payment Method": "payment_method",
    "paymentMethod": "payment_method",
    "Sold By": "seller",
    "soldBy": "seller",
    "Discount Amount": "discount_amount",
    "discountAmount": "discount_amount",
    "Mrp Pre Tax": "mrp",
    "mrpPreTax": "mrp",
}

SESSIONS_COLUMNS = {
    "Date": "date",
    "Cleaned Class": "class_type",
    "cleanedClass": "class_type",
    "Class": "class_type",
    "Location": "location",
    "Trainer": "trainer",
    "Teacher Name": "trainer",
    "teacherName": "trainer",
    "Checked In Count": "checked_in",
    "Checked In": "checked_in",
    "checkedInCount": "checked_in",
    "Capacity": "capacity",
}

PAYROLL_COLUMNS = {
    "Teacher ID": "trainer_id",
    "teacherId": "trainer_id",
    "Teacher Name": "trainer_name",
    "teacherName": "trainer_name",
    "Location": "location",
    "Month Year": "month",
    "monthYear": "month",
    "Total Sessions": "total_sessions",
    "totalSessions": "total_sessions",
    "Total Customers": "total_customers",
    "totalCustomers": "total_customers",
    "Total Paid": "total_paid",
    "totalPaid": "total_paid",
}

NEW_CLIENT_COLUMNS = {
    "First Visit Date": "first_visit_date",
    "firstVisitDate": "first_visit_date",
    "Member ID": "member_id",
    "memberId": "member_id",
    "Home Location": "location",
    "homeLocation": "location",
    "First Visit Location": "location",
    "Conversion Status": "conversion_status",
    "conversionStatus": "conversion_status",
    "Retention Status": "retention_status",
    "retentionStatus": "retention_status",
    "LTV": "ltv",
    "ltv": "ltv",
}

LEADS_COLUMNS = {
    "Created At": "date",
    "createdAt": "date",
    "Date": "date",
    "Source": "source",
    "Stage": "stage",
    "Status": "status",
    "Center": "location",
    "Location": "location",
}

# source -> (rename map, canonical columns, numeric cols, date cols)
SCHEMAS: Dict[str, Tuple[Dict[str, str], List[str], List[str], List[str]]] = {
    "sales": (
        SALES_COLUMNS,
        ["date", "amount", "vat", "member_id", "product", "category", "location", "payment_method", "seller", "discount_amount", "mrp"],
        ["amount", "vat", "discount_amount", "mrp"],
        ["date"],
    ),
    "sessions": (
        SESSIONS_COLUMNS,
        ["date", "class_type", "location", "trainer", "checked_in", "capacity"],
        ["checked_in", "capacity"],
        ["date"],
    ),
    "payroll": (
        PAYROLL_COLUMNS,
        ["trainer_id", "trainer_name", "location", "month", "total_sessions", "total_customers", "total_paid"],
        ["total_sessions", "total_customers", "total_paid"],
        ["month"],
    ),
    "new_clients": (
        NEW_CLIENT_COLUMNS,
        ["first_visit_date", "member_id", "location", "conversion_status", "retention_status", "ltv"],
        ["ltv"],
        ["first_visit_date"],
    ),
    "leads": (
        LEADS_COLUMNS,
        ["date", "source", "stage", "status", "location"],
        [],
        ["date"],
    ),
}

DATE_COLUMNS = {
    "sales": "date",
    "sessions": "date",
    "payroll": "month",
    "new_clients": "first_visit_date",
    "leads": "date",
}

SALES_DIMENSIONS = {
    "categories": "category",
    "products": "product",
    "sellers": "seller",
    "payment_methods": "payment_method",
}


class DataSourceError(Exception):
    """A spreadsheet source could not be read."""


@dataclass
class SourceResult:
    data: pd.DataFrame = field(default_factory=pd.DataFrame)
    error: Optional[str] = None


# ---------------- Paths ----------------
def get_source_path() -> Optional[Path]:
    explicit = os.environ.get("STUDIO_DATA_PATH")
    if explicit:
        return Path(explicit)
    if not DATA_DIR.exists():
        return None
    workbooks = sorted(DATA_DIR.glob(FILE_GLOB), key=lambda p: p.stat().st_mtime)
    if workbooks:
        return workbooks[-1]
    if any(DATA_DIR.glob("*.csv")):
        return DATA_DIR
    return None


def source_signature(path: Path) -> Tuple[Tuple[str, float], ...]:
    if path.is_dir():
        files = sorted(path.glob("*.csv"))
    else:
        files = [path] if path.exists() else []
    return tuple((f.name, f.stat().st_mtime) for f in files)


# ---------------- Cleaning helpers ----------------
def find_header_row(df: pd.DataFrame, keywords: Iterable[str], search_rows: int = 25) -> Optional[int]:
    lowered = {k.lower() for k in keywords}
    for idx in range(min(search_rows, len(df))):
        row = {str(v).strip().lower() for v in df.iloc[idx].tolist()}
        if row & lowered:
            return idx
    return None


def drop_duplicate_columns(df: pd.DataFrame) -> pd.DataFrame:
    return df.loc[:, ~df.columns.duplicated()]


def numericize(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col not in df.columns:
            continue
        series = df[col]
        if pd.api.types.is_numeric_dtype(series):
            df[col] = pd.to_numeric(series, errors="coerce")
            continue
        # "Rs. 1,200" and "₹1,200" keep their first number; "1.2e3" parses as is
        text = series.astype("string").str.replace(",", "", regex=False).str.strip().fillna("")
        parsed = pd.to_numeric(text.astype(object), errors="coerce")
        first = text.str.extract(r"(-?\d+(?:\.\d+)?)", expand=False).fillna("")
        df[col] = parsed.fillna(pd.to_numeric(first.astype(object), errors="coerce"))
    return df


def coerce_str_safe(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            series = df[col].astype("string").str.strip()
            series = series.replace({"nan": pd.NA, "None": pd.NA, "": pd.NA, "NaT": pd.NA})
            df[col] = series
    return df


def parse_dates(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            df[col] = pd.to_datetime(df[col], errors="coerce")
    return df


def clean_source(raw: pd.DataFrame, source: str) -> pd.DataFrame:
    rename, canonical, numeric, dates = SCHEMAS[source]
    df = raw.copy()
    df.columns = [str(c).strip() for c in df.columns]
    df = df.rename(columns=rename)
    df = drop_duplicate_columns(df)
    for col in canonical:
        if col not in df.columns:
            df[col] = pd.NA
    df = df[canonical]
    df = df.dropna(how="all")
    text_cols = [c for c in canonical if c not in numeric and c not in dates]
    df = coerce_str_safe(df, text_cols)
    df = numericize(df, numeric)
    df = parse_dates(df, dates)
    return df.reset_index(drop=True)


def empty_source(source: str) -> pd.DataFrame:
    _, canonical, _, _ = SCHEMAS[source]
    return pd.DataFrame(columns=canonical)


# ---------------- Loaders ----------------
def _read_raw(path: Path, source: str) -> pd.DataFrame:
    rename = SCHEMAS[source][0]
    if path.is_dir():
        csv_path = path / f"{source}.csv"
        if not csv_path.exists():
            raise DataSourceError(f"Missing {csv_path.name} in {path}")
        raw = pd.read_csv(csv_path, header=None, dtype=object)
    else:
        sheet = SHEET_NAMES[source]
        try:
            raw = pd.read_excel(path, sheet_name=sheet, header=None, engine="openpyxl")
        except ValueError as exc:
            raise DataSourceError(f"Sheet '{sheet}' not found in {path.name}") from exc
    if raw.empty:
        return pd.DataFrame()
    header_row = find_header_row(raw, list(rename.keys()) + list(SCHEMAS[source][1]))
    if header_row is None:
        raise DataSourceError(f"No recognizable header row for {source} in {path.name}")
    df = raw.iloc[header_row + 1 :].copy()
    df.columns = raw.iloc[header_row].tolist()
    return df


def load_source(path: Optional[Path], source: str) -> SourceResult:
    if path is None:
        return SourceResult(data=empty_source(source), error=f"No data file found in {DATA_DIR}")
    try:
        raw = _read_raw(path, source)
    except (DataSourceError, OSError, ValueError) as exc:
        logger.warning("Failed to load %s from %s: %s", source, path, exc)
        return SourceResult(data=empty_source(source), error=str(exc))
    return SourceResult(data=clean_source(raw, source))


def latest_record_date(frames: Dict[str, pd.DataFrame]) -> Optional[date]:
    for source in ("sales", "sessions", "leads", "new_clients"):
        df = frames.get(source, pd.DataFrame())
        col = DATE_COLUMNS[source]
        if df.empty or col not in df.columns:
            continue
        latest = pd.to_datetime(df[col], errors="coerce").max()
        if pd.notna(latest):
            return latest.date()
    return None


# ---------------- Public API (Streamlit + FastAPI) ----------------
@lru_cache(maxsize=4)
def _load_dashboard_data_cached(path_str: str, sig: Tuple[Tuple[str, float], ...]) -> Dict[str, object]:
    path = Path(path_str)
    logger.info("Loading dashboard data from %s", path)
    frames: Dict[str, pd.DataFrame] = {}
    errors: Dict[str, str] = {}
    for source in SOURCES:
        result = load_source(path, source)
        frames[source] = result.data
        if result.error:
            errors[source] = result.error
    return {
        "path": str(path),
        "errors": errors,
        "latest_date": latest_record_date(frames),
        **frames,
    }


def load_dashboard_data() -> Dict[str, object]:
    path = get_source_path()
    if path is None or not path.exists():
        msg = f"No data file found in {DATA_DIR}" if path is None else f"Data file not found: {path}"
        logger.warning(msg)
        return {
            "path": None,
            "errors": {s: msg for s in SOURCES},
            "latest_date": None,
            **{s: empty_source(s) for s in SOURCES},
        }
    return _load_dashboard_data_cached(str(path), source_signature(path))


def clear_cache() -> None:
    _load_dashboard_data_cached.cache_clear()


# ---------------- Filtering ----------------
def filter_isin(df: pd.DataFrame, col: str, values: List[str]) -> pd.DataFrame:
    if df.empty or not values or col not in df.columns:
        return df
    wanted = {v.lower() for v in values}
    return df[df[col].astype("string").str.lower().isin(wanted).fillna(False)]


def filter_date_range(df: pd.DataFrame, col: str, date_range: Optional[DateRange], *, monthly: bool = False) -> pd.DataFrame:
    if df.empty or date_range is None or col not in df.columns:
        return df
    if date_range.start is None and date_range.end is None:
        return df
    dates = pd.to_datetime(df[col], errors="coerce").dt.normalize()
    if dates.isna().all():
        # undated export (e.g. a payroll sheet without a month column)
        return df
    mask = dates.notna()
    if date_range.start is not None:
        start = pd.Timestamp(date_range.start)
        if monthly:
            start = start.replace(day=1)
        mask &= dates >= start
    if date_range.end is not None:
        mask &= dates <= pd.Timestamp(date_range.end)
    return df[mask]


def prepare_context(filters: dict | DashboardFilters, data_ctx: Dict[str, object]) -> Dict[str, object]:
    filt = (
        filters
        if isinstance(filters, DashboardFilters)
        else normalize_filters(filters, reference_date=data_ctx.get("latest_date"))
    )

    ctx: Dict[str, object] = {"filters": filt, "errors": dict(data_ctx.get("errors") or {})}
    for source in SOURCES:
        df = data_ctx.get(source)
        df = df.copy() if isinstance(df, pd.DataFrame) else empty_source(source)
        df = filter_isin(df, "location", filt.locations)
        if source == "sales":
            for attr, col in SALES_DIMENSIONS.items():
                df = filter_isin(df, col, getattr(filt, attr))
        date_col = DATE_COLUMNS[source]
        ctx[f"{source}_all_dates"] = df
        ctx[source] = filter_date_range(df, date_col, filt.date_range, monthly=(source == "payroll"))

    prev = previous_period(filt.date_range)
    ctx["previous_range"] = prev
    ctx["previous_sales"] = (
        filter_date_range(ctx["sales_all_dates"], "date", prev) if prev is not None else empty_source("sales")
    )
    return ctx


def filter_options(data_ctx: Dict[str, object]) -> Dict[str, List[str]]:
    def distinct(source: str, col: str) -> set:
        df = data_ctx.get(source)
        if not isinstance(df, pd.DataFrame) or df.empty or col not in df.columns:
            return set()
        return {str(v) for v in df[col].dropna().unique().tolist() if str(v).strip()}

    locations = set()
    for source in SOURCES:
        locations |= distinct(source, "location")
    return {
        "locations": sorted(locations),
        "categories": sorted(distinct("sales", "category")),
        "products": sorted(distinct("sales", "product")),
        "sellers": sorted(distinct("sales", "seller")),
        "payment_methods": sorted(distinct("sales", "payment_method")),
    }


def source_errors(ctx: Dict[str, object], sources: Iterable[str]) -> Dict[str, str]:
    errors = ctx.get("errors") or {}
    return {s: errors[s] for s in sources if s in errors}
