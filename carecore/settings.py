from __future__ import annotations

import json
import logging
import os
import uuid
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

from carecore.timeparse import parse_time_to_minutes

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parents[1]
SETTINGS_PATH = Path(os.environ.get("CARE_SETTINGS_PATH", DATA_DIR / "admin_settings.json"))

DEFAULT_CAPACITY = 20
DEFAULT_CAREGIVER_START = "13:00"
DEFAULT_CAREGIVER_END = "18:00"
DEFAULT_WORK_START_MINUTES = 13 * 60
DEFAULT_WORK_END_MINUTES = 18 * 60

CRITERION_AVG_STAY = "avg_stay_time"
CRITERION_ABSENCE_DAYS = "absence_days"
CRITERION_TYPES = (CRITERION_AVG_STAY, CRITERION_ABSENCE_DAYS)
OPERATORS = ("greater", "less")


@dataclass(frozen=True)
class ScreeningCriterion:
    id: str
    type: str
    value: int
    operator: str


@dataclass(frozen=True)
class ClassSetting:
    id: str
    class_name: str
    capacity: int


DEFAULT_CRITERIA: Tuple[ScreeningCriterion, ...] = (
    ScreeningCriterion(id="1", type=CRITERION_AVG_STAY, value=60, operator="less"),
    ScreeningCriterion(id="2", type=CRITERION_ABSENCE_DAYS, value=3, operator="greater"),
)


@dataclass(frozen=True)
class AdminSettings:
    class_settings: Tuple[ClassSetting, ...] = ()
    screening_criteria: Tuple[ScreeningCriterion, ...] = field(default=DEFAULT_CRITERIA)
    caregiver_start: str = DEFAULT_CAREGIVER_START
    caregiver_end: str = DEFAULT_CAREGIVER_END

    def get_class_capacity(self, class_name: str) -> int:
        for setting in self.class_settings:
            if setting.class_name == class_name:
                return setting.capacity
        return DEFAULT_CAPACITY

    def work_window(self) -> Tuple[int, int]:
        """Caregiver hours in minutes; unparsable (or zero) bounds fall back to 13:00-18:00."""
        start = parse_time_to_minutes(self.caregiver_start) or DEFAULT_WORK_START_MINUTES
        end = parse_time_to_minutes(self.caregiver_end) or DEFAULT_WORK_END_MINUTES
        return start, end


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------- Updates (each returns a new snapshot) ----------------
def update_capacity(settings: AdminSettings, class_name: str, capacity: int) -> AdminSettings:
    capacity = _as_capacity(capacity)
    if any(c.class_name == class_name for c in settings.class_settings):
        updated = tuple(
            replace(c, capacity=capacity) if c.class_name == class_name else c
            for c in settings.class_settings
        )
    else:
        updated = settings.class_settings + (
            ClassSetting(id=_new_id(), class_name=class_name, capacity=capacity),
        )
    return replace(settings, class_settings=updated)


def update_caregiver_hours(settings: AdminSettings, start: str, end: str) -> AdminSettings:
    return replace(settings, caregiver_start=start, caregiver_end=end)


def add_criterion(settings: AdminSettings, criterion_type: str, value: int, operator: str) -> AdminSettings:
    criterion = ScreeningCriterion(id=_new_id(), type=criterion_type, value=int(value), operator=operator)
    return replace(settings, screening_criteria=settings.screening_criteria + (criterion,))


def remove_criterion(settings: AdminSettings, criterion_id: str) -> AdminSettings:
    kept = tuple(c for c in settings.screening_criteria if c.id != criterion_id)
    return replace(settings, screening_criteria=kept)


def update_criterion(settings: AdminSettings, criterion_id: str, **updates: Any) -> AdminSettings:
    allowed = {k: v for k, v in updates.items() if k in {"type", "value", "operator"} and v is not None}
    if "value" in allowed:
        allowed["value"] = int(allowed["value"])
    criteria = tuple(
        replace(c, **allowed) if c.id == criterion_id else c for c in settings.screening_criteria
    )
    return replace(settings, screening_criteria=criteria)


def find_criterion(settings: AdminSettings, criterion_id: str) -> Optional[ScreeningCriterion]:
    return next((c for c in settings.screening_criteria if c.id == criterion_id), None)


# ---------------- Normalization ----------------
def _as_capacity(value: object) -> int:
    try:
        capacity = int(value)  # type: ignore[arg-type]
    except Exception:
        return DEFAULT_CAPACITY
    return max(1, capacity)


def _as_criteria(values: Optional[Iterable[dict]]) -> Tuple[ScreeningCriterion, ...]:
    out = []
    for raw in values or []:
        if not isinstance(raw, dict):
            continue
        ctype = raw.get("type")
        operator = raw.get("operator")
        if ctype not in CRITERION_TYPES or operator not in OPERATORS:
            continue
        try:
            value = int(raw.get("value"))
        except Exception:
            continue
        out.append(
            ScreeningCriterion(id=str(raw.get("id") or _new_id()), type=ctype, value=value, operator=operator)
        )
    return tuple(out)


def normalize_settings(raw: dict) -> AdminSettings:
    classes: Dict[str, ClassSetting] = {}
    for item in raw.get("class_settings") or []:
        if not isinstance(item, dict):
            continue
        name = str(item.get("class_name") or "").strip()
        if not name:
            continue
        # Last entry wins so a class never has two capacities.
        classes[name] = ClassSetting(
            id=str(item.get("id") or _new_id()),
            class_name=name,
            capacity=_as_capacity(item.get("capacity")),
        )

    if "screening_criteria" in raw:
        criteria = _as_criteria(raw.get("screening_criteria"))
    else:
        criteria = DEFAULT_CRITERIA

    start = str(raw.get("caregiver_start") or DEFAULT_CAREGIVER_START).strip()
    end = str(raw.get("caregiver_end") or DEFAULT_CAREGIVER_END).strip()
    return AdminSettings(
        class_settings=tuple(classes.values()),
        screening_criteria=criteria,
        caregiver_start=start,
        caregiver_end=end,
    )


def settings_to_dict(settings: AdminSettings) -> Dict[str, Any]:
    data = asdict(settings)
    data["class_settings"] = list(data["class_settings"])
    data["screening_criteria"] = list(data["screening_criteria"])
    return data


# ---------------- Persistence ----------------
def load_settings(path: str | Path = SETTINGS_PATH) -> AdminSettings:
    path = Path(path)
    if not path.exists():
        return AdminSettings()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        logger.exception("Could not read settings from %s; using defaults", path)
        return AdminSettings()
    if not isinstance(raw, dict):
        logger.warning("Settings file %s is not a JSON object; using defaults", path)
        return AdminSettings()
    return normalize_settings(raw)


def save_settings(settings: AdminSettings, path: str | Path = SETTINGS_PATH) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(settings_to_dict(settings), ensure_ascii=False, indent=2), encoding="utf-8")
    logger.info("Saved admin settings to %s", path)
    return path
