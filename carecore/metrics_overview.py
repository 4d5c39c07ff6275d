from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

import altair as alt

from carecore.charts import BAR_COLOR, to_vega_spec
from carecore.metrics_occupancy import weekday_token
from carecore.records import StudentRecord, records_frame
from carecore.timeparse import round_half_up


def compute_overview(records: List[StudentRecord], today: Optional[date] = None) -> Dict[str, Any]:
    today = today or date.today()
    token = weekday_token(today)

    payload: Dict[str, Any] = {
        "today": today.isoformat(),
        "weekday": token,
        "kpis": {
            "total_students": 0,
            "total_classes": 0,
            "today_count": 0,
            "avg_care_minutes": 0,
        },
        "class_counts": [],
        "charts": {},
    }
    if not records:
        return payload

    df = records_frame(records)
    kpis = payload["kpis"]
    kpis["total_students"] = int(df["student_name"].nunique())
    kpis["total_classes"] = int(df.loc[df["class_name"] != "", "class_name"].nunique())
    if token is not None:
        kpis["today_count"] = int(df["day_of_week"].str.contains(token, regex=False).sum())
    kpis["avg_care_minutes"] = round_half_up(df["actual_care_minutes"].sum() / len(df))

    class_counts = (
        df[df["class_name"] != ""]
        .groupby("class_name")
        .agg(rows=("id", "size"), students=("student_name", "nunique"))
        .reset_index()
        .sort_values("class_name")
    )
    payload["class_counts"] = class_counts.to_dict(orient="records")
    if not class_counts.empty:
        class_chart = (
            alt.Chart(class_counts)
            .mark_bar(color=BAR_COLOR)
            .encode(
                x=alt.X("class_name:N", title="돌봄교실"),
                y=alt.Y("students:Q", title="학생 수"),
                tooltip=["class_name", "students", "rows"],
            )
        )
        payload["charts"]["class_students"] = to_vega_spec(class_chart)
    return payload
