from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List

import altair as alt
import pandas as pd

from carecore.charts import ALERT_COLOR, BAR_COLOR, to_vega_spec
from carecore.duration import minutes_to_korean
from carecore.records import StudentRecord, records_frame
from carecore.settings import (
    CRITERION_ABSENCE_DAYS,
    CRITERION_AVG_STAY,
    AdminSettings,
    ScreeningCriterion,
    settings_to_dict,
)
from carecore.timeparse import round_half_up


@dataclass(frozen=True)
class StudentStat:
    name: str
    class_name: str
    total_minutes: int
    days_count: int
    avg_stay: int
    is_screening_target: bool


def matches_criterion(criterion: ScreeningCriterion, avg_stay: int, days_count: int) -> bool:
    if criterion.type == CRITERION_AVG_STAY:
        if criterion.operator == "less":
            return avg_stay < criterion.value
        return avg_stay > criterion.value
    if criterion.type == CRITERION_ABSENCE_DAYS:
        # Attended days stand in for absences (no scheduled-day total is known), so
        # "greater" absences means fewer attended days. Kept as-is for compatibility.
        if criterion.operator == "greater":
            return days_count < criterion.value
        return days_count > criterion.value
    return False


def is_screening_target(criteria: Iterable[ScreeningCriterion], avg_stay: int, days_count: int) -> bool:
    return any(matches_criterion(c, avg_stay, days_count) for c in criteria)


def aggregate_students(
    records: Iterable[StudentRecord], criteria: Iterable[ScreeningCriterion]
) -> List[StudentStat]:
    """One stat per (student, class) pair, in first-seen order."""
    df = records_frame(records)
    if df.empty:
        return []
    criteria = list(criteria)

    grouped = (
        df.groupby(["student_name", "class_name"], sort=False, dropna=False)["actual_care_minutes"]
        .agg(total_minutes="sum", days_count="size")
        .reset_index()
    )

    stats: List[StudentStat] = []
    for row in grouped.itertuples(index=False):
        total = int(row.total_minutes)
        days = int(row.days_count)
        avg_stay = round_half_up(total / days)
        stats.append(
            StudentStat(
                name=row.student_name,
                class_name=row.class_name,
                total_minutes=total,
                days_count=days,
                avg_stay=avg_stay,
                is_screening_target=is_screening_target(criteria, avg_stay, days),
            )
        )
    return stats


def search_stats(stats: Iterable[StudentStat], q: str = "") -> List[StudentStat]:
    q = (q or "").strip()
    if not q:
        return list(stats)
    return [s for s in stats if q in s.name or q in s.class_name]


def _table_rows(stats: List[StudentStat]) -> List[Dict[str, Any]]:
    rows = []
    for s in stats:
        row = asdict(s)
        row["total_display"] = minutes_to_korean(s.total_minutes)
        row["avg_display"] = minutes_to_korean(s.avg_stay)
        rows.append(row)
    return rows


def compute_students(settings: AdminSettings, records: List[StudentRecord], q: str = "") -> Dict[str, Any]:
    stats = search_stats(aggregate_students(records, settings.screening_criteria), q)

    payload: Dict[str, Any] = {
        "settings": settings_to_dict(settings),
        "kpis": {"students": len(stats), "screening_targets": 0, "avg_stay": None},
        "charts": {},
        "table": _table_rows(stats),
    }
    if not stats:
        return payload

    payload["kpis"]["screening_targets"] = sum(1 for s in stats if s.is_screening_target)
    payload["kpis"]["avg_stay"] = round_half_up(sum(s.avg_stay for s in stats) / len(stats))

    chart_df = pd.DataFrame([asdict(s) for s in stats])
    chart_df["label"] = chart_df["name"] + " (" + chart_df["class_name"] + ")"
    avg_chart = (
        alt.Chart(chart_df)
        .mark_bar()
        .encode(
            x=alt.X("label:N", title="학생", sort="-y"),
            y=alt.Y("avg_stay:Q", title="1일 평균 (분)"),
            color=alt.condition("datum.is_screening_target", alt.value(ALERT_COLOR), alt.value(BAR_COLOR)),
            tooltip=[
                alt.Tooltip("name:N", title="학생명"),
                alt.Tooltip("class_name:N", title="돌봄교실"),
                alt.Tooltip("avg_stay:Q", title="1일 평균 (분)"),
                alt.Tooltip("days_count:Q", title="등교 일수"),
            ],
        )
    )
    payload["charts"]["avg_stay"] = to_vega_spec(avg_chart)
    return payload
