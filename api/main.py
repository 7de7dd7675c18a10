from __future__ import annotations

import logging
import math
import os
from typing import Any, Callable, Dict, Iterable, Tuple

import numpy as np
import pandas as pd
from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import DashboardFiltersModel, FilterOptionsResponse, SourcesResponse, SourceStatus
from analytics.data import SOURCES, filter_options, load_dashboard_data, prepare_context
from analytics.filters import DashboardFilters, normalize_filters
from analytics.metrics_clients import compute_clients
from analytics.metrics_discounts import compute_discounts
from analytics.metrics_executive import compute_executive_summary
from analytics.metrics_leads import compute_leads
from analytics.metrics_sales import compute_sales
from analytics.metrics_sessions import compute_sessions
from analytics.metrics_trainers import compute_trainers

PageFn = Callable[[DashboardFilters, Dict[str, Any]], Dict[str, Any]]

# page -> (compute function, sources it reads, source exported as CSV)
PAGES: Dict[str, Tuple[PageFn, Tuple[str, ...], str]] = {
    "executive-summary": (compute_executive_summary, SOURCES, "sales"),
    "sales": (compute_sales, ("sales",), "sales"),
    "sessions": (compute_sessions, ("sessions",), "sessions"),
    "trainers": (compute_trainers, ("payroll",), "payroll"),
    "clients": (compute_clients, ("new_clients",), "new_clients"),
    "leads": (compute_leads, ("leads",), "leads"),
    "discounts": (compute_discounts, ("sales",), "sales"),
}

DEFAULT_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:8501"

app = FastAPI(title="Studio Analytics API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.environ.get("STUDIO_CORS_ORIGINS", DEFAULT_ORIGINS).split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _filters_from_model(model: DashboardFiltersModel, data_ctx: Dict[str, Any]) -> DashboardFilters:
    raw = model.model_dump()
    return normalize_filters(raw, reference_date=data_ctx.get("latest_date"))


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                type(pd.NaT): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _failed_sources(data_ctx: Dict[str, Any], sources: Iterable[str]) -> Dict[str, str]:
    errors = data_ctx.get("errors") or {}
    sources = tuple(sources)
    failed = {s: errors[s] for s in sources if s in errors}
    return failed if len(failed) == len(sources) else {}


def _render_page(page: str, filters: DashboardFiltersModel) -> JSONResponse:
    compute, sources, _ = PAGES[page]
    try:
        data_ctx = load_dashboard_data()
        failed = _failed_sources(data_ctx, sources)
        if failed:
            logger.warning("%s unavailable: %s", page, failed)
            return JSONResponse(
                status_code=503,
                content={"error": "Data source unavailable", "type": "DataSourceError", "sources": failed},
            )
        f = _filters_from_model(filters, data_ctx)
        ctx = prepare_context(f, data_ctx)
        return _json(compute(f, ctx))
    except Exception as exc:
        logger.exception("%s failed", page)
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/meta/filters", response_model=FilterOptionsResponse)
def meta_filters():
    try:
        data_ctx = load_dashboard_data()
        return _json({**filter_options(data_ctx), "latest_date": data_ctx.get("latest_date")})
    except Exception as exc:
        logger.exception("meta_filters failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/meta/sources", response_model=SourcesResponse)
def meta_sources():
    try:
        data_ctx = load_dashboard_data()
        errors = data_ctx.get("errors") or {}
        sources = {
            s: SourceStatus(rows=int(len(data_ctx.get(s, pd.DataFrame()))), error=errors.get(s))
            for s in SOURCES
        }
        return _json(SourcesResponse(path=data_ctx.get("path"), sources=sources))
    except Exception as exc:
        logger.exception("meta_sources failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.post("/executive-summary")
def executive_summary(filters: DashboardFiltersModel):
    return _render_page("executive-summary", filters)


@app.post("/sales")
def sales(filters: DashboardFiltersModel):
    return _render_page("sales", filters)


@app.post("/sessions")
def sessions(filters: DashboardFiltersModel):
    return _render_page("sessions", filters)


@app.post("/trainers")
def trainers(filters: DashboardFiltersModel):
    return _render_page("trainers", filters)


@app.post("/clients")
def clients(filters: DashboardFiltersModel):
    return _render_page("clients", filters)


@app.post("/leads")
def leads(filters: DashboardFiltersModel):
    return _render_page("leads", filters)


@app.post("/discounts")
def discounts(filters: DashboardFiltersModel):
    return _render_page("discounts", filters)


@app.post("/export/{page}")
def export_page(page: str, filters: DashboardFiltersModel):
    data_ctx = load_dashboard_data()
    f = _filters_from_model(filters, data_ctx)
    ctx = prepare_context(f, data_ctx)

    source = PAGES[page][2] if page in PAGES else None
    export_df = ctx.get(source) if source else None
    if export_df is None or not hasattr(export_df, "to_csv"):
        export_df = pd.DataFrame()
    filename = f"{page}.csv"
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})
