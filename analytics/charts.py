from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()

PALETTE = ["#3B82F6", "#8B5CF6", "#10B981", "#F59E0B", "#EF4444", "#6366F1", "#EC4899", "#14B8A6"]


def to_vega_spec(chart: alt.TopLevelMixin) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _frame(rows: Sequence[Mapping[str, Any]] | pd.DataFrame) -> pd.DataFrame:
    return rows if isinstance(rows, pd.DataFrame) else pd.DataFrame(list(rows))


def bar_chart(
    rows: Sequence[Mapping[str, Any]] | pd.DataFrame,
    *,
    x: str,
    y: str,
    title: Optional[str] = None,
    y_format: str = ",.0f",
    axis_format: str = "~s",
    horizontal: bool = False,
    tooltip: Optional[List[str]] = None,
) -> Optional[Dict[str, Any]]:
    df = _frame(rows)
    if df.empty or x not in df.columns or y not in df.columns:
        return None
    hover = alt.selection_point(fields=[x], on="mouseover", empty="all")
    cat_axis = alt.Axis(grid=False, labelLimit=180)
    val_axis = alt.Axis(format=axis_format, gridDash=[4, 4], domain=False, ticks=False)
    if horizontal:
        x_enc = alt.X(f"{y}:Q", title=None, axis=val_axis)
        y_enc = alt.Y(f"{x}:N", sort=None, title=None, axis=cat_axis)
    else:
        x_enc = alt.X(f"{x}:N", sort=None, title=None, axis=cat_axis)
        y_enc = alt.Y(f"{y}:Q", title=None, axis=val_axis)
    extra = [alt.Tooltip(f"{c}:Q", format=",.2f") for c in (tooltip or []) if c in df.columns and c not in (x, y)]
    chart = (
        alt.Chart(df)
        .mark_bar(cornerRadius=3)
        .encode(
            x=x_enc,
            y=y_enc,
            color=alt.Color(f"{x}:N", legend=None, scale=alt.Scale(range=PALETTE)),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.6)),
            tooltip=[alt.Tooltip(f"{x}:N"), alt.Tooltip(f"{y}:Q", format=y_format)] + extra,
        )
        .add_params(hover)
        .properties(height=260)
    )
    if title:
        chart = chart.properties(title=title)
    return to_vega_spec(chart)


def line_chart(
    rows: Sequence[Mapping[str, Any]] | pd.DataFrame,
    *,
    x: str,
    y: str,
    color: Optional[str] = None,
    title: Optional[str] = None,
    y_format: str = ",.0f",
    axis_format: str = "~s",
) -> Optional[Dict[str, Any]]:
    df = _frame(rows)
    if df.empty or x not in df.columns or y not in df.columns:
        return None
    enc: Dict[str, Any] = {
        "x": alt.X(f"{x}:O", sort=None, title=None, axis=alt.Axis(grid=False, labelAngle=0)),
        "y": alt.Y(f"{y}:Q", title=None, axis=alt.Axis(format=axis_format, gridDash=[4, 4], domain=False, ticks=False)),
        "tooltip": [alt.Tooltip(f"{x}:O"), alt.Tooltip(f"{y}:Q", format=y_format)],
    }
    chart = alt.Chart(df).mark_line(point={"filled": True, "size": 60}, color=PALETTE[0])
    if color and color in df.columns:
        hover = alt.selection_point(fields=[color], on="mouseover", empty="all")
        enc["color"] = alt.Color(f"{color}:N", scale=alt.Scale(range=PALETTE))
        enc["opacity"] = alt.condition(hover, alt.value(1), alt.value(0.2))
        enc["tooltip"] = [alt.Tooltip(f"{color}:N")] + enc["tooltip"]
        chart = chart.encode(**enc).add_params(hover)
    else:
        chart = chart.encode(**enc)
    chart = chart.properties(height=260)
    if title:
        chart = chart.properties(title=title)
    return to_vega_spec(chart)


def arc_chart(
    rows: Sequence[Mapping[str, Any]] | pd.DataFrame,
    *,
    category: str,
    value: str,
    title: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    df = _frame(rows)
    if df.empty or category not in df.columns or value not in df.columns:
        return None
    chart = (
        alt.Chart(df)
        .mark_arc(innerRadius=60)
        .encode(
            theta=alt.Theta(f"{value}:Q"),
            color=alt.Color(f"{category}:N", scale=alt.Scale(range=PALETTE)),
            tooltip=[alt.Tooltip(f"{category}:N"), alt.Tooltip(f"{value}:Q", format=",")],
        )
        .properties(height=260)
    )
    if title:
        chart = chart.properties(title=title)
    return to_vega_spec(chart)
