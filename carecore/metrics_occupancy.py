from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

import altair as alt
import numpy as np
import pandas as pd

from carecore.charts import ALERT_COLOR, BAR_COLOR, to_vega_spec
from carecore.records import StudentRecord, records_frame
from carecore.settings import (
    DEFAULT_WORK_END_MINUTES,
    DEFAULT_WORK_START_MINUTES,
    AdminSettings,
)
from carecore.timeparse import parse_time_to_minutes

WEEKDAYS = ["월", "화", "수", "목", "금"]
ALL_CLASSES = "all"
# Capacity is per class; an all-classes view never overflows.
UNBOUNDED_CAPACITY = 999
SLOT_MINUTES = 60
PROBE_MINUTES = 10


@dataclass(frozen=True)
class OccupancySlot:
    time: str
    count: int
    is_over: bool


def weekday_token(day: date) -> Optional[str]:
    index = day.weekday()
    return WEEKDAYS[index] if index < len(WEEKDAYS) else None


def default_weekday(day: date) -> str:
    return weekday_token(day) or WEEKDAYS[0]


def _intervals(records: Iterable[StudentRecord], selected_class: str, weekday: str) -> tuple[np.ndarray, np.ndarray]:
    df = records_frame(records)
    if df.empty:
        return np.array([], dtype=int), np.array([], dtype=int)
    mask = df["day_of_week"].astype(str).str.contains(weekday, regex=False)
    if selected_class != ALL_CLASSES:
        mask &= df["class_name"] == selected_class
    subset = df[mask]
    starts = subset["start_time"].map(parse_time_to_minutes).to_numpy(dtype=int)
    ends = subset["end_time"].map(parse_time_to_minutes).to_numpy(dtype=int)
    return starts, ends


def project_occupancy(
    records: Iterable[StudentRecord],
    selected_class: str,
    weekday: str,
    work_start: object,
    work_end: object,
    capacity: int,
) -> List[OccupancySlot]:
    """Peak head-count per working hour.

    Each hour is probed every 10 minutes and the largest probe wins, so a short
    overlap between probes can be missed.
    """
    start = parse_time_to_minutes(work_start) or DEFAULT_WORK_START_MINUTES
    end = parse_time_to_minutes(work_end) or DEFAULT_WORK_END_MINUTES
    starts, ends = _intervals(records, selected_class, weekday)

    slots: List[OccupancySlot] = []
    for minute in range(start, end, SLOT_MINUTES):
        hour = minute // 60
        slot_start = hour * 60
        peak = 0
        for probe in range(slot_start, slot_start + SLOT_MINUTES, PROBE_MINUTES):
            peak = max(peak, int(((starts <= probe) & (probe < ends)).sum()))
        slots.append(
            OccupancySlot(
                time=f"{hour:02d}:00",
                count=peak,
                is_over=selected_class != ALL_CLASSES and peak > capacity,
            )
        )
    return slots


def _peak_range(peak_time: str) -> str:
    if peak_time == "-":
        return "-"
    return f"{peak_time} ~ {int(peak_time.split(':')[0]) + 1}:00"


def compute_occupancy(
    settings: AdminSettings,
    records: List[StudentRecord],
    selected_class: str = ALL_CLASSES,
    weekday: Optional[str] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    weekday = weekday or default_weekday(today or date.today())
    single_class = selected_class != ALL_CLASSES
    capacity = settings.get_class_capacity(selected_class) if single_class else UNBOUNDED_CAPACITY

    payload: Dict[str, Any] = {
        "selected_class": selected_class,
        "weekday": weekday,
        "work_hours": {"start": settings.caregiver_start, "end": settings.caregiver_end},
        "capacity": capacity if single_class else None,
        "slots": [],
        "kpis": {},
        "charts": {},
    }
    if not records:
        return payload

    slots = project_occupancy(
        records, selected_class, weekday, settings.caregiver_start, settings.caregiver_end, capacity
    )
    max_count = max((s.count for s in slots), default=0)
    peak_time = next((s.time for s in slots if s.count == max_count and max_count > 0), "-")
    payload["slots"] = [asdict(s) for s in slots]
    payload["kpis"] = {
        "max_count": max_count,
        "peak_time": peak_time,
        "peak_range": _peak_range(peak_time),
        "has_warning": any(s.is_over for s in slots),
        "utilization": min(max_count / capacity, 1.0) if single_class else None,
    }
    if not slots:
        return payload

    slot_df = pd.DataFrame(payload["slots"])
    y_scale = alt.Scale(domain=[0, max(capacity + 5, max_count + 2)]) if single_class else alt.Undefined
    bars = (
        alt.Chart(slot_df)
        .mark_bar(cornerRadiusTopLeft=8, cornerRadiusTopRight=8, size=40)
        .encode(
            x=alt.X("time:O", title="시간대", axis=alt.Axis(labelAngle=0)),
            y=alt.Y("count:Q", title="학생 수", scale=y_scale),
            color=alt.condition("datum.is_over", alt.value(ALERT_COLOR), alt.value(BAR_COLOR)),
            tooltip=[
                alt.Tooltip("time:O", title="시간대"),
                alt.Tooltip("count:Q", title="학생 수"),
            ],
        )
    )
    chart = bars
    if single_class:
        rule = (
            alt.Chart(pd.DataFrame({"y": [capacity]}))
            .mark_rule(color=ALERT_COLOR, strokeDash=[8, 4], strokeWidth=2)
            .encode(y="y:Q")
        )
        chart = bars + rule
    payload["charts"]["occupancy"] = to_vega_spec(chart)
    return payload
