from __future__ import annotations

from dataclasses import asdict
import logging
import math
import os
from typing import Any, Optional

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, File, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
import requests

from dashboard.charts import build_charts
from dashboard.data import IngestError, UnsupportedFormat
from dashboard.grid import EXPORT_FILENAME, export_csv, grid_page
from dashboard.session import DashboardSession, SessionSnapshot
from dashboard_api.powerbi import EmbedSettings, EmbedTokenError, generate_embed_token
from dashboard_api.schemas import (
    EmbedTokenResponse,
    EmbedVisibilityModel,
    ErrorResponse,
    FilterConfigModel,
    UploadResponse,
)


app = FastAPI(title="Upload Analytics Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:8501"

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.environ.get("DASHBOARD_CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_session = DashboardSession()


def get_session() -> DashboardSession:
    return _session


def get_embed_settings() -> EmbedSettings:
    return EmbedSettings.from_env()


def get_http_session() -> Any:
    return requests


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
        ),
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return _json({"error": str(exc), "type": type(exc).__name__}, status_code=status_code)


def _dashboard_payload(snap: SessionSnapshot) -> dict:
    summary = snap.summary
    return {
        "source_name": snap.dataset.source_name,
        "fields": [asdict(f) for f in snap.dataset.fields],
        "filters": asdict(snap.filters),
        "kpis": asdict(summary.kpis),
        "categories": [asdict(c) for c in summary.categories],
        "time_series": asdict(summary.time_series),
        "charts": build_charts(summary.categories, summary.time_series),
        "embed_visible": snap.embed_visible,
        "version": snap.version,
    }


@app.get("/api/powerbi-token", response_model=EmbedTokenResponse, responses={500: {"model": ErrorResponse}})
def powerbi_token(
    settings: EmbedSettings = Depends(get_embed_settings),
    http: Any = Depends(get_http_session),
):
    try:
        token = generate_embed_token(settings, session=http)
    except EmbedTokenError as exc:
        logger.error("Power BI token generation error: %s", exc)
        return _json(exc.to_payload(), status_code=500)
    except Exception:
        logger.exception("powerbi_token failed")
        return _json({"error": "Failed to generate Power BI embed token"}, status_code=500)
    return JSONResponse(content=token.to_payload(), headers={"Cache-Control": "no-store"})


@app.post("/upload", response_model=UploadResponse, responses={400: {"model": ErrorResponse}, 422: {"model": ErrorResponse}})
async def upload(file: UploadFile = File(...), session: DashboardSession = Depends(get_session)):
    filename = file.filename or ""
    try:
        ticket = session.begin_upload(filename)
        content = await file.read()
        accepted = await run_in_threadpool(session.complete_upload, ticket, filename, content)
    except UnsupportedFormat as exc:
        return _error(exc, status_code=400)
    except IngestError as exc:
        return _error(exc, status_code=422)
    except Exception as exc:
        logger.exception("upload failed")
        return _error(exc)
    if not accepted:
        return _json({"error": "Upload superseded by a newer upload", "type": "StaleUpload"}, status_code=409)
    dataset = session.dataset
    return _json({"source_name": dataset.source_name, "rows": len(dataset), "fields": [asdict(f) for f in dataset.fields]})


@app.get("/filters")
def get_filters(session: DashboardSession = Depends(get_session)):
    return _json(asdict(session.filters))


@app.put("/filters")
def put_filters(filters: FilterConfigModel, session: DashboardSession = Depends(get_session)):
    try:
        session.set_filters(filters.model_dump())
        return _json(_dashboard_payload(session.snapshot()))
    except Exception as exc:
        logger.exception("put_filters failed")
        return _error(exc)


@app.get("/dashboard")
def dashboard(session: DashboardSession = Depends(get_session)):
    try:
        return _json(_dashboard_payload(session.snapshot()))
    except Exception as exc:
        logger.exception("dashboard failed")
        return _error(exc)


@app.get("/rows")
def rows(
    page: int = Query(default=1, ge=1),
    sort_by: Optional[str] = Query(default=None),
    descending: bool = Query(default=False),
    session: DashboardSession = Depends(get_session),
):
    try:
        snap = session.snapshot()
        result = grid_page(snap.filtered, snap.dataset.fields, page, sort_by=sort_by, descending=descending)
        return _json(asdict(result))
    except Exception as exc:
        logger.exception("rows failed")
        return _error(exc)


@app.get("/export")
def export(
    sort_by: Optional[str] = Query(default=None),
    descending: bool = Query(default=False),
    session: DashboardSession = Depends(get_session),
):
    snap = session.snapshot()
    csv_bytes = export_csv(snap.filtered, snap.dataset.fields, sort_by=sort_by, descending=descending)
    return Response(
        content=csv_bytes,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={EXPORT_FILENAME}"},
    )


@app.put("/embed")
def set_embed(body: EmbedVisibilityModel, session: DashboardSession = Depends(get_session)):
    return _json({"embed_visible": session.set_embed_visible(body.visible)})


@app.post("/reset")
def reset(session: DashboardSession = Depends(get_session)):
    session.reset()
    return _json(_dashboard_payload(session.snapshot()))
