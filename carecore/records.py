from __future__ import annotations

import io
import logging
import re
import zipfile
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Union

import pandas as pd

from carecore.duration import calculate_actual_care_time
from carecore.timeparse import is_missing, normalize_time

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".xlsx", ".xls", ".csv")

# Header synonyms, tried in order. Matching falls back to ignoring spaces and case.
STUDENT_NAME_KEYS = ("학생명", "학생 이름", "이름")
CLASS_NAME_KEYS = ("돌봄교실명", "돌봄교실", "교실명", "교실")
DAY_OF_WEEK_KEYS = ("요일",)
START_TIME_KEYS = ("참여 시작시간", "시작시간", "시작", "입실시간", "참여시간")
END_TIME_KEYS = ("귀가시간", "귀가", "퇴실시간", "하교시간")
OUTING_TIME_KEYS = ("외출시간", "외출시간(방과후학교 등)", "외출")

RECORD_COLUMNS = [
    "id",
    "student_name",
    "class_name",
    "day_of_week",
    "start_time",
    "end_time",
    "outing_time",
    "actual_care_minutes",
]

CANONICAL_TIME_RE = re.compile(r"^\d{2}:\d{2}$")

Source = Union[str, Path, bytes, io.IOBase]


class ImportFileError(ValueError):
    """Raised when an uploaded attendance file cannot produce any rows."""


@dataclass(frozen=True)
class StudentRecord:
    id: str
    student_name: str
    class_name: str
    day_of_week: str
    start_time: str
    end_time: str
    outing_time: str
    actual_care_minutes: int


def _normalize_key(key: object) -> str:
    return re.sub(r"\s", "", str(key)).lower()


def _has_value(value: object) -> bool:
    return not is_missing(value) and value != ""


def find_value(row: Mapping[str, Any], *keys: str) -> Any:
    """Return the first non-empty cell among `keys` (exact header, then loose header match)."""
    for key in keys:
        value = row.get(key)
        if _has_value(value):
            return value
        wanted = _normalize_key(key)
        found = next((k for k in row.keys() if _normalize_key(k) == wanted), None)
        if found is not None and _has_value(row[found]):
            return row[found]
    return ""


def _text(value: object) -> str:
    if is_missing(value):
        return ""
    return str(value).strip()


def build_record(row: Mapping[str, Any], index: int) -> StudentRecord:
    start_raw = find_value(row, *START_TIME_KEYS)
    end_raw = find_value(row, *END_TIME_KEYS)
    outing_raw = find_value(row, *OUTING_TIME_KEYS)

    start_time = normalize_time(start_raw)
    end_time = normalize_time(end_raw)
    outing_time = normalize_time(outing_raw)
    for label, value in (("start", start_time), ("end", end_time), ("outing", outing_time)):
        if value != "-" and not CANONICAL_TIME_RE.match(value):
            logger.debug("Row %s: unparseable %s time %r", index, label, value)

    return StudentRecord(
        id=f"student-{index}",
        student_name=_text(find_value(row, *STUDENT_NAME_KEYS)),
        class_name=_text(find_value(row, *CLASS_NAME_KEYS)),
        day_of_week=_text(find_value(row, *DAY_OF_WEEK_KEYS)),
        start_time=start_time,
        end_time=end_time,
        outing_time=outing_time,
        actual_care_minutes=calculate_actual_care_time(start_time, end_time, outing_time),
    )


def build_records(rows: Iterable[Mapping[str, Any]]) -> List[StudentRecord]:
    return [build_record(row, i) for i, row in enumerate(rows)]


# ---------------- File loading ----------------
def _suffix(filename: str) -> str:
    return Path(filename).suffix.lower()


def read_attendance_rows(source: Source, filename: str | None = None) -> List[Dict[str, Any]]:
    """Read the first sheet of an XLSX/XLS/CSV attendance file into row dicts."""
    if filename is None:
        if not isinstance(source, (str, Path)):
            raise ImportFileError("unsupported file type")
        filename = str(source)
    suffix = _suffix(filename)
    if suffix not in SUPPORTED_SUFFIXES:
        raise ImportFileError(f"unsupported file type: {filename}")

    handle = io.BytesIO(source) if isinstance(source, bytes) else source
    try:
        if suffix == ".csv":
            df = pd.read_csv(handle, dtype=str, keep_default_na=False, encoding="utf-8-sig")
        else:
            df = pd.read_excel(handle, sheet_name=0)
    except pd.errors.EmptyDataError as exc:
        raise ImportFileError("empty file") from exc
    except (ValueError, OSError, zipfile.BadZipFile) as exc:
        raise ImportFileError(f"could not read {filename}: {exc}") from exc

    df = df.dropna(how="all")
    df = df.astype(object).where(pd.notnull(df), "")
    rows = df.to_dict(orient="records")
    rows = [row for row in rows if any(_has_value(v) for v in row.values())]
    if not rows:
        raise ImportFileError("empty file")
    logger.info("Read %d attendance rows from %s", len(rows), filename)
    return rows


def load_records(source: Source, filename: str | None = None) -> List[StudentRecord]:
    records = build_records(read_attendance_rows(source, filename))
    zero_rows = sum(1 for r in records if r.actual_care_minutes == 0)
    if zero_rows:
        logger.warning("%d of %d rows resolved to zero care minutes", zero_rows, len(records))
    return records


def records_frame(records: Iterable[StudentRecord]) -> pd.DataFrame:
    rows = [asdict(r) for r in records]
    if not rows:
        return pd.DataFrame(columns=RECORD_COLUMNS)
    return pd.DataFrame(rows, columns=RECORD_COLUMNS)


def unique_classes(records: Iterable[StudentRecord]) -> List[str]:
    return sorted({r.class_name for r in records if r.class_name})


def unique_days(records: Iterable[StudentRecord]) -> List[str]:
    """Distinct day-of-week cells in first-seen order."""
    seen: Dict[str, None] = {}
    for r in records:
        if r.day_of_week:
            seen.setdefault(r.day_of_week, None)
    return list(seen)


def filter_records(records: Iterable[StudentRecord], q: str = "", day: str = "전체") -> List[StudentRecord]:
    q = (q or "").strip()
    out = []
    for r in records:
        if q and q not in r.student_name and q not in r.class_name:
            continue
        if day and day != "전체" and r.day_of_week != day:
            continue
        out.append(r)
    return out


def template_rows() -> List[Dict[str, str]]:
    return [
        {
            "학생명": "홍길동",
            "돌봄교실명": "햇살반",
            "요일": "월, 수, 금",
            "참여 시작시간": "13:00",
            "귀가시간": "17:00",
            "외출시간": "14:00~15:00",
        },
        {
            "학생명": "김철수",
            "돌봄교실명": "바다반",
            "요일": "화, 목",
            "참여 시작시간": "13:30",
            "귀가시간": "16:30",
            "외출시간": "30분",
        },
    ]
