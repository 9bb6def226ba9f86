from __future__ import annotations

import logging
import math
from functools import lru_cache
from typing import Any, Callable, Dict

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import DashboardFiltersModel, MetaFiltersResponse, SeedResponse
from parcelboard import __version__
from parcelboard.config import configure_logging, get_settings
from parcelboard.data import EXPORT_FILENAME, export_to_csv, fetch_parcels_by_date_range, load_context, seed_database
from parcelboard.filters import DEFAULT_TIME_FILTER, TIME_FILTERS, DashboardFilters, normalize_filters
from parcelboard.metrics_courier import compute_courier_report
from parcelboard.metrics_dashboard import compute_overview
from parcelboard.metrics_parcels import compute_parcels_report
from parcelboard.metrics_staff import compute_staff_performance
from parcelboard.store import ParcelStore, build_store

settings = get_settings()
configure_logging(settings.log_level)

app = FastAPI(title="Parcel Analytics API", version=__version__)
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

PageCompute = Callable[[DashboardFilters, Dict[str, Any]], Dict[str, Any]]


@lru_cache(maxsize=1)
def _default_store() -> ParcelStore:
    return build_store(get_settings())


def get_store() -> ParcelStore:
    return _default_store()


def _filters_from_model(model: DashboardFiltersModel) -> DashboardFilters:
    raw = model.model_dump()
    s = get_settings()
    return normalize_filters(raw, default_delay_hours=s.delay_hours, default_row_limit=s.row_limit)


def _error(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _page(name: str, compute: PageCompute, filters: DashboardFiltersModel, store: ParcelStore) -> JSONResponse:
    try:
        f = _filters_from_model(filters)
        ctx = load_context(store, f)
        return _json(compute(f, ctx))
    except Exception as exc:
        logger.exception("%s failed", name)
        return _error(exc)


@app.get("/meta/filters", response_model=MetaFiltersResponse)
def meta_filters():
    return MetaFiltersResponse(time_filters=list(TIME_FILTERS), default=DEFAULT_TIME_FILTER)


@app.post("/overview")
def overview(filters: DashboardFiltersModel, store: ParcelStore = Depends(get_store)):
    return _page("overview", compute_overview, filters, store)


@app.post("/staff-performance")
def staff_performance(filters: DashboardFiltersModel, store: ParcelStore = Depends(get_store)):
    return _page("staff_performance", compute_staff_performance, filters, store)


@app.post("/courier-report")
def courier_report(filters: DashboardFiltersModel, store: ParcelStore = Depends(get_store)):
    return _page("courier_report", compute_courier_report, filters, store)


@app.post("/parcels-report")
def parcels_report(filters: DashboardFiltersModel, store: ParcelStore = Depends(get_store)):
    return _page("parcels_report", compute_parcels_report, filters, store)


@app.post("/export")
def export_csv(filters: DashboardFiltersModel, store: ParcelStore = Depends(get_store)):
    try:
        f = _filters_from_model(filters)
        parcels = fetch_parcels_by_date_range(store, f.date_range())
    except Exception as exc:
        logger.exception("export failed")
        return _error(exc)
    return Response(
        content=export_to_csv(parcels),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={EXPORT_FILENAME}"},
    )


@app.post("/seed", response_model=SeedResponse)
def seed(store: ParcelStore = Depends(get_store)):
    try:
        return SeedResponse(seeded=seed_database(store))
    except Exception as exc:
        logger.exception("seed failed")
        return JSONResponse(status_code=500, content={"error": "Failed to seed database.", "type": type(exc).__name__})
