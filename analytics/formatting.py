from __future__ import annotations

from typing import Iterable, Optional

import pandas as pd

CURRENCY_SYMBOL = "₹"


def _is_missing(value: object) -> bool:
    return value is None or (not isinstance(value, str) and pd.isna(value))


def format_currency(value: object, decimals: int = 0) -> str:
    if _is_missing(value):
        return "N/A"
    return f"{CURRENCY_SYMBOL}{float(value):,.{decimals}f}"


def format_number(value: object, decimals: int = 0) -> str:
    if _is_missing(value):
        return "N/A"
    return f"{float(value):,.{decimals}f}"


def format_percent(value: object, decimals: int = 1) -> str:
    """Values are already percentages (fill rate 72.5 -> '72.5%')."""
    if _is_missing(value):
        return "N/A"
    return f"{float(value):.{decimals}f}%"


def format_delta(value: Optional[float]) -> Optional[str]:
    if _is_missing(value) or float(value) == 0:
        return None
    return f"{float(value):+.1f}%"


def format_currency_columns(df: pd.DataFrame, cols: Iterable[str], decimals: int = 0) -> pd.DataFrame:
    formatted = df.copy()
    for c in cols:
        if c in formatted.columns:
            formatted[c] = formatted[c].apply(lambda v: format_currency(v, decimals) if not _is_missing(v) else "")
    return formatted


def format_percent_columns(df: pd.DataFrame, cols: Iterable[str], decimals: int = 1) -> pd.DataFrame:
    formatted = df.copy()
    for c in cols:
        if c in formatted.columns:
            formatted[c] = formatted[c].apply(lambda v: format_percent(v, decimals) if not _is_missing(v) else "")
    return formatted
