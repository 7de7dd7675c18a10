"""Grouped reductions shared by every dashboard page.

A page describes what it wants as a key rule plus a list of tagged
accumulation rules; `grouped_reduce` turns that into an ordered list of
JSON-serializable group summaries:

    grouped_reduce(
        sales,
        "location",
        [Sum("amount", name="revenue"), Count(name="transactions"), Distinct("member_id", name="clients")],
        rank_by="revenue",
        top_n=5,
    )

Absent or non-numeric values count as 0, absent keys fall back to a sentinel
label, and ratios with a zero denominator are 0. Nothing here raises on bad
data.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import pandas as pd

UNKNOWN = "Unknown"

Records = Union[pd.DataFrame, Iterable[Mapping[str, Any]]]
KeyRule = Union[str, Callable[[pd.DataFrame], pd.Series]]


@dataclass(frozen=True)
class Sum:
    field: str
    name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.name or self.field


@dataclass(frozen=True)
class Count:
    name: str = "count"

    @property
    def label(self) -> str:
        return self.name


@dataclass(frozen=True)
class Distinct:
    field: str
    name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.name or f"unique_{self.field}"


@dataclass(frozen=True)
class Mean:
    field: str
    name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.name or f"avg_{self.field}"


@dataclass(frozen=True)
class Ratio:
    """Ratio of two other rules' outputs, e.g. fill rate = checked_in / capacity."""

    name: str
    numerator: str
    denominator: str
    scale: float = 1.0

    @property
    def label(self) -> str:
        return self.name


Rule = Union[Sum, Count, Distinct, Mean, Ratio]


def safe_div(numerator: Any, denominator: Any, scale: float = 1.0) -> float:
    try:
        num = float(numerator or 0)
        den = float(denominator or 0)
    except (TypeError, ValueError):
        return 0.0
    if den == 0 or pd.isna(den) or pd.isna(num):
        return 0.0
    return num / den * scale


def as_frame(records: Records) -> pd.DataFrame:
    if isinstance(records, pd.DataFrame):
        return records
    if records is None:
        return pd.DataFrame()
    return pd.DataFrame.from_records(list(records))


def numeric_column(df: pd.DataFrame, field: str) -> pd.Series:
    if field not in df.columns:
        return pd.Series(0.0, index=df.index)
    return pd.to_numeric(df[field], errors="coerce").fillna(0)


def key_column(df: pd.DataFrame, key: KeyRule, fallback: str = UNKNOWN) -> pd.Series:
    if callable(key):
        raw = pd.Series(key(df), index=df.index)
    elif key in df.columns:
        raw = df[key]
    else:
        return pd.Series(fallback, index=df.index, dtype=object)
    keys = raw.astype("string").str.strip()
    blank = keys.isna() | keys.isin(["", "nan", "None", "NaT", "<NA>"])
    return keys.where(~blank, fallback).astype(object)


def month_of(field: str) -> Callable[[pd.DataFrame], pd.Series]:
    """Key rule bucketing a date column into ``YYYY-MM``."""

    def _key(df: pd.DataFrame) -> pd.Series:
        if field not in df.columns:
            return pd.Series(pd.NA, index=df.index)
        return pd.to_datetime(df[field], errors="coerce").dt.strftime("%Y-%m")

    return _key


def flag_column(df: pd.DataFrame, field: str, *values: str) -> pd.Series:
    """1 where `field` equals one of `values` (case-insensitive), else 0."""
    if field not in df.columns:
        return pd.Series(0, index=df.index)
    wanted = {v.lower() for v in values}
    return df[field].astype("string").str.strip().str.lower().isin(wanted).astype(int)


def _working_frame(df: pd.DataFrame, rules: Sequence[Rule]) -> pd.DataFrame:
    cols: Dict[str, pd.Series] = {}
    for rule in rules:
        if isinstance(rule, (Sum, Mean)):
            cols[f"__num_{rule.field}"] = numeric_column(df, rule.field)
        elif isinstance(rule, Distinct):
            if rule.field in df.columns:
                values = df[rule.field].astype("string").str.strip()
                cols[f"__val_{rule.field}"] = values.where(~values.fillna("").eq(""))
            else:
                cols[f"__val_{rule.field}"] = pd.Series(pd.NA, index=df.index, dtype="string")
    cols["__row"] = pd.Series(1, index=df.index)
    return pd.DataFrame(cols, index=df.index)


def _finish(out: pd.DataFrame, rules: Sequence[Rule]) -> pd.DataFrame:
    for rule in rules:
        if isinstance(rule, Mean):
            out[rule.label] = [safe_div(s, n) for s, n in zip(out[f"__sum_{rule.field}"], out["__rows"])]
    for rule in rules:
        if isinstance(rule, Ratio):
            num = out[rule.numerator] if rule.numerator in out.columns else pd.Series(0, index=out.index)
            den = out[rule.denominator] if rule.denominator in out.columns else pd.Series(0, index=out.index)
            out[rule.label] = [safe_div(n, d, rule.scale) for n, d in zip(num, den)]
    return out


def grouped_reduce(
    records: Records,
    key: KeyRule,
    rules: Sequence[Rule],
    *,
    key_name: Optional[str] = None,
    fallback: str = UNKNOWN,
    rank_by: Optional[str] = None,
    top_n: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Group records by `key` and accumulate `rules` per group.

    Groups come back in first-encounter order. With `rank_by` they are sorted
    by that output descending (stable, so ties keep encounter order) and
    `top_n` keeps the first N.
    """
    df = as_frame(records)
    if len(df.index) == 0:
        return []
    key_name = key_name or (key if isinstance(key, str) else "key")

    work = _working_frame(df, rules)
    work["__key"] = key_column(df, key, fallback)

    named: Dict[str, tuple] = {"__rows": ("__row", "sum")}
    for rule in rules:
        if isinstance(rule, Sum):
            named[rule.label] = (f"__num_{rule.field}", "sum")
        elif isinstance(rule, Count):
            named[rule.label] = ("__row", "sum")
        elif isinstance(rule, Distinct):
            named[rule.label] = (f"__val_{rule.field}", "nunique")
        elif isinstance(rule, Mean):
            named[f"__sum_{rule.field}"] = (f"__num_{rule.field}", "sum")

    out = work.groupby("__key", sort=False).agg(**named).reset_index()
    out = _finish(out, rules)
    out = out.rename(columns={"__key": key_name})

    if rank_by is not None and rank_by in out.columns:
        out = out.sort_values(rank_by, ascending=False, kind="stable")
    if top_n is not None:
        out = out.head(max(0, int(top_n)))

    keep = [key_name] + [rule.label for rule in rules]
    return out[keep].to_dict(orient="records")


def reduce_totals(records: Records, rules: Sequence[Rule]) -> Dict[str, Any]:
    """Ungrouped version of `grouped_reduce`; empty input gives all-zero totals."""
    df = as_frame(records)
    if len(df.index) == 0:
        return {rule.label: 0 for rule in rules}
    rows = grouped_reduce(df, lambda d: pd.Series("__all", index=d.index), rules, key_name="__all")
    totals = rows[0]
    totals.pop("__all", None)
    return totals


def rank(rows: List[Dict[str, Any]], field: str, top_n: Optional[int] = None, *, ascending: bool = False) -> List[Dict[str, Any]]:
    """Stable sort of already-reduced rows; used for bottom-N lists and re-ranking."""
    ordered = sorted(rows, key=lambda r: safe_div(r.get(field), 1.0), reverse=not ascending)
    return ordered[:top_n] if top_n is not None else ordered
