from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager

import numpy as np
import pandas as pd
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import SelectionModel, SelectionPatchModel, SessionCreateModel
from bikeshare.data import Dataset, load_default_dataset
from bikeshare.errors import SelectionError, SessionNotFound
from bikeshare.explore import (
    compute_meta,
    compute_plot_builder_page,
    compute_scatter_page,
    export_view_csv,
    render_payload,
)
from bikeshare.filters import Selection, normalize_selection
from bikeshare.session import SessionRegistry


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # A missing or malformed dataset aborts startup.
    dataset = getattr(app.state, "dataset", None)
    if dataset is None:
        dataset = load_default_dataset()
    app.state.dataset = dataset
    app.state.registry = SessionRegistry(dataset)
    logger.info("serving %r", dataset)
    yield


app = FastAPI(title="BikeShare Explorer API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _dataset(request: Request) -> Dataset:
    return request.app.state.dataset


def _registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def _selection_from_model(model: SelectionModel, dataset: Dataset) -> Selection:
    return normalize_selection(model.model_dump(exclude_none=True), dataset)


def _json(data: object, status_code: int = 200) -> JSONResponse:
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
        status_code=status_code,
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


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/meta")
def meta(request: Request):
    try:
        return _json(compute_meta(_dataset(request)))
    except Exception as exc:
        logger.exception("meta failed")
        return _error(500, exc)


@app.post("/scatter")
def scatter(selection: SelectionModel, request: Request):
    try:
        dataset = _dataset(request)
        return _json(compute_scatter_page(_selection_from_model(selection, dataset), dataset))
    except SelectionError as exc:
        return _error(422, exc)
    except Exception as exc:
        logger.exception("scatter failed")
        return _error(500, exc)


@app.post("/plot-builder")
def plot_builder(selection: SelectionModel, request: Request):
    try:
        dataset = _dataset(request)
        return _json(compute_plot_builder_page(_selection_from_model(selection, dataset), dataset))
    except SelectionError as exc:
        return _error(422, exc)
    except Exception as exc:
        logger.exception("plot_builder failed")
        return _error(500, exc)


@app.post("/export")
def export(selection: SelectionModel, request: Request):
    try:
        dataset = _dataset(request)
        csv_bytes = export_view_csv(_selection_from_model(selection, dataset), dataset)
    except SelectionError as exc:
        return _error(422, exc)
    filename = "bikeshare_filtered.csv"
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})


@app.post("/sessions", status_code=201)
def create_session(body: SessionCreateModel, request: Request):
    try:
        raw = body.model_dump(exclude_none=True, exclude={"variant"})
        session = _registry(request).create(raw, variant=body.variant)
        return _json(render_payload(session), status_code=201)
    except SelectionError as exc:
        return _error(422, exc)
    except Exception as exc:
        logger.exception("create_session failed")
        return _error(500, exc)


@app.get("/sessions/{session_id}")
def get_session(session_id: str, request: Request):
    try:
        session = _registry(request).get(session_id)
        return _json(render_payload(session))
    except SessionNotFound as exc:
        return _error(404, exc)
    except Exception as exc:
        logger.exception("get_session failed")
        return _error(500, exc)


@app.patch("/sessions/{session_id}")
def patch_session(session_id: str, body: SelectionPatchModel, request: Request):
    try:
        session = _registry(request).get(session_id)
        raw = body.model_dump(exclude_none=True)
        session.update_from_dict(raw)
        return _json(render_payload(session))
    except SessionNotFound as exc:
        return _error(404, exc)
    except SelectionError as exc:
        return _error(422, exc)
    except Exception as exc:
        logger.exception("patch_session failed")
        return _error(500, exc)


@app.delete("/sessions/{session_id}", status_code=204)
def delete_session(session_id: str, request: Request):
    try:
        _registry(request).drop(session_id)
    except SessionNotFound as exc:
        return _error(404, exc)
    return Response(status_code=204)
