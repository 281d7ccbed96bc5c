from __future__ import annotations

from dataclasses import asdict
import logging
import math

import numpy as np
import pandas as pd
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.responses import Response
from fastapi.encoders import jsonable_encoder

from psdash.config import REGIONS
from psdash.data import list_datasets, load_dashboard_data
from psdash.errors import DatasetError, EmptyDataset, LoadFailed, MissingColumn
from psdash.filters import DashboardFilters, normalize_filters
from psdash.metrics_trend import compute_branch_summary, compute_export, compute_trend, prepare_context
from psdash.months import str_from_key
from psdash_api.schemas import DashboardFiltersModel, DatasetListResponse, DatasetMetaResponse


app = FastAPI(title="Product Support Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_ERROR_STATUS = {MissingColumn: 422, EmptyDataset: 422, LoadFailed: 502}


def _filters_from_model(model: DashboardFiltersModel, data_ctx: dict) -> DashboardFilters:
    raw = model.model_dump(exclude_none=True)
    return normalize_filters(raw, available_categories=data_ctx.get("categories"), bounds=data_ctx.get("bounds"))


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
                frozenset: sorted,
            },
        )
    )


def _error(exc: Exception, name: str) -> JSONResponse:
    if isinstance(exc, DatasetError):
        status = _ERROR_STATUS.get(type(exc), 422)
        logger.warning("%s failed: %s", name, exc)
        return JSONResponse(status_code=status, content={"error": str(exc), "type": type(exc).__name__})
    logger.exception("%s failed", name)
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/meta/datasets", response_model=DatasetListResponse)
def meta_datasets():
    try:
        return _json({"datasets": [asdict(e) for e in list_datasets()]})
    except Exception as exc:
        return _error(exc, "meta_datasets")


@app.get("/meta/dataset/{dataset_id}", response_model=DatasetMetaResponse)
def meta_dataset(dataset_id: str):
    try:
        if dataset_id not in {e.id for e in list_datasets()}:
            return JSONResponse(status_code=404, content={"error": f"Unknown dataset {dataset_id}", "type": "NotFound"})
        data_ctx = load_dashboard_data(dataset_id)
        lo, hi = data_ctx["bounds"]
        return _json(
            {
                "dataset": asdict(data_ctx["dataset"]),
                "min_month": str_from_key(lo),
                "max_month": str_from_key(hi),
                "years": data_ctx["years"],
                "categories": data_ctx["categories"],
                "branches": data_ctx["branches"],
                "regions": REGIONS,
            }
        )
    except Exception as exc:
        return _error(exc, "meta_dataset")


@app.post("/series")
def series(filters: DashboardFiltersModel):
    try:
        data_ctx = load_dashboard_data(filters.dataset)
        f = _filters_from_model(filters, data_ctx)
        ctx = prepare_context(f, data_ctx)
        return _json(compute_trend(f, ctx))
    except Exception as exc:
        return _error(exc, "series")


@app.post("/branch-summary")
def branch_summary(filters: DashboardFiltersModel):
    try:
        data_ctx = load_dashboard_data(filters.dataset)
        f = _filters_from_model(filters, data_ctx)
        ctx = prepare_context(f, data_ctx)
        return _json(compute_branch_summary(f, ctx))
    except Exception as exc:
        return _error(exc, "branch_summary")


@app.post("/export")
def export_view(filters: DashboardFiltersModel):
    try:
        data_ctx = load_dashboard_data(filters.dataset)
        f = _filters_from_model(filters, data_ctx)
        ctx = prepare_context(f, data_ctx)
        out = compute_export(f, ctx)
    except Exception as exc:
        return _error(exc, "export")
    return Response(
        content=out["content"].encode("utf-8"),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={out['filename']}"},
    )
