from __future__ import annotations

from dataclasses import asdict
import logging
import math
import threading
from pathlib import Path
from typing import Callable, List, Optional, Tuple
from urllib.parse import quote

import numpy as np
import pandas as pd
from fastapi import FastAPI, File, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.responses import Response
from fastapi.encoders import jsonable_encoder

from api.schemas import (
    AdminSettingsModel,
    CapacityUpdateModel,
    CaregiverHoursModel,
    CriterionCreateModel,
    CriterionUpdateModel,
)
from carecore import settings as settings_mod
from carecore.export import (
    STUDENT_ANALYSIS_FILENAME,
    STUDENT_ANALYSIS_SHEET,
    TEMPLATE_FILENAME,
    TEMPLATE_SHEET,
    student_analysis_frame,
    template_frame,
    to_xlsx_bytes,
)
from carecore.metrics_occupancy import ALL_CLASSES, WEEKDAYS, compute_occupancy
from carecore.metrics_overview import compute_overview
from carecore.metrics_students import aggregate_students, compute_students, search_stats
from carecore.records import (
    ImportFileError,
    StudentRecord,
    filter_records,
    load_records,
    unique_classes,
    unique_days,
)
from carecore.settings import AdminSettings, find_criterion, load_settings, normalize_settings, save_settings


app = FastAPI(title="Care Class Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class DashboardSession:
    """Uploaded records plus admin settings, shared by every request in the process.

    Records are replaced wholesale on import; readers take a snapshot so a settings
    edit never lands halfway through a computation.
    """

    def __init__(self, settings_path: str | Path):
        self.settings_path = Path(settings_path)
        self._lock = threading.Lock()
        self._records: List[StudentRecord] = []
        self._settings = load_settings(self.settings_path)

    def snapshot(self) -> Tuple[List[StudentRecord], AdminSettings]:
        with self._lock:
            return list(self._records), self._settings

    def replace_records(self, records: List[StudentRecord]) -> None:
        with self._lock:
            self._records = list(records)

    def update_settings(self, change: Callable[[AdminSettings], AdminSettings]) -> AdminSettings:
        with self._lock:
            updated = change(self._settings)
            save_settings(updated, self.settings_path)
            self._settings = updated
            return updated


session = DashboardSession(settings_mod.SETTINGS_PATH)


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
            },
        )
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _xlsx(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )


@app.post("/records/upload")
def upload_records(file: UploadFile = File(...)):
    try:
        records = load_records(file.file.read(), file.filename or "")
    except ImportFileError as exc:
        logger.warning("upload rejected: %s", exc)
        return _error(exc, status_code=400)
    except Exception as exc:
        logger.exception("upload_records failed")
        return _error(exc)
    session.replace_records(records)
    return _json({"count": len(records), "records": [asdict(r) for r in records]})


@app.get("/records")
def list_records(q: str = Query(default=""), day: str = Query(default="전체")):
    try:
        records, _ = session.snapshot()
        return _json({"records": [asdict(r) for r in filter_records(records, q=q, day=day)]})
    except Exception as exc:
        logger.exception("list_records failed")
        return _error(exc)


@app.get("/meta/classes")
def meta_classes():
    records, _ = session.snapshot()
    return _json({"classes": unique_classes(records)})


@app.get("/meta/days")
def meta_days():
    records, _ = session.snapshot()
    return _json({"days": ["전체"] + unique_days(records), "weekdays": WEEKDAYS})


@app.get("/overview")
def overview():
    try:
        records, _ = session.snapshot()
        return _json(compute_overview(records))
    except Exception as exc:
        logger.exception("overview failed")
        return _error(exc)


@app.get("/students")
def students(q: str = Query(default="")):
    try:
        records, settings = session.snapshot()
        return _json(compute_students(settings, records, q=q))
    except Exception as exc:
        logger.exception("students failed")
        return _error(exc)


@app.get("/occupancy")
def occupancy(
    class_name: str = Query(default=ALL_CLASSES),
    weekday: Optional[str] = Query(default=None),
):
    try:
        records, settings = session.snapshot()
        return _json(compute_occupancy(settings, records, selected_class=class_name, weekday=weekday))
    except Exception as exc:
        logger.exception("occupancy failed")
        return _error(exc)


# ---------------- Settings ----------------
@app.get("/settings")
def get_settings():
    _, settings = session.snapshot()
    return _json(settings_mod.settings_to_dict(settings))


@app.put("/settings")
def put_settings(body: AdminSettingsModel):
    try:
        updated = session.update_settings(lambda _current: normalize_settings(body.model_dump()))
        return _json(settings_mod.settings_to_dict(updated))
    except Exception as exc:
        logger.exception("put_settings failed")
        return _error(exc)


@app.put("/settings/capacity")
def put_capacity(body: CapacityUpdateModel):
    try:
        updated = session.update_settings(
            lambda current: settings_mod.update_capacity(current, body.class_name, body.capacity)
        )
        return _json(settings_mod.settings_to_dict(updated))
    except Exception as exc:
        logger.exception("put_capacity failed")
        return _error(exc)


@app.put("/settings/hours")
def put_hours(body: CaregiverHoursModel):
    try:
        updated = session.update_settings(
            lambda current: settings_mod.update_caregiver_hours(current, body.start, body.end)
        )
        return _json(settings_mod.settings_to_dict(updated))
    except Exception as exc:
        logger.exception("put_hours failed")
        return _error(exc)


@app.post("/settings/criteria")
def post_criterion(body: CriterionCreateModel):
    try:
        updated = session.update_settings(
            lambda current: settings_mod.add_criterion(current, body.type, body.value, body.operator)
        )
        return _json(settings_mod.settings_to_dict(updated))
    except Exception as exc:
        logger.exception("post_criterion failed")
        return _error(exc)


@app.patch("/settings/criteria/{criterion_id}")
def patch_criterion(criterion_id: str, body: CriterionUpdateModel):
    _, current = session.snapshot()
    if find_criterion(current, criterion_id) is None:
        return _error(KeyError(criterion_id), status_code=404)
    try:
        updated = session.update_settings(
            lambda s: settings_mod.update_criterion(s, criterion_id, **body.model_dump(exclude_none=True))
        )
        return _json(settings_mod.settings_to_dict(updated))
    except Exception as exc:
        logger.exception("patch_criterion failed")
        return _error(exc)


@app.delete("/settings/criteria/{criterion_id}")
def delete_criterion(criterion_id: str):
    _, current = session.snapshot()
    if find_criterion(current, criterion_id) is None:
        return _error(KeyError(criterion_id), status_code=404)
    try:
        updated = session.update_settings(lambda s: settings_mod.remove_criterion(s, criterion_id))
        return _json(settings_mod.settings_to_dict(updated))
    except Exception as exc:
        logger.exception("delete_criterion failed")
        return _error(exc)


# ---------------- Exports ----------------
@app.get("/export/students")
def export_students(q: str = Query(default="")):
    records, settings = session.snapshot()
    stats = search_stats(aggregate_students(records, settings.screening_criteria), q)
    content = to_xlsx_bytes(student_analysis_frame(stats), STUDENT_ANALYSIS_SHEET)
    return _xlsx(content, STUDENT_ANALYSIS_FILENAME)


@app.get("/export/template")
def export_template():
    return _xlsx(to_xlsx_bytes(template_frame(), TEMPLATE_SHEET), TEMPLATE_FILENAME)
