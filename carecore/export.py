from __future__ import annotations

import io
from typing import Iterable

import pandas as pd

from carecore.duration import minutes_to_korean
from carecore.metrics_students import StudentStat
from carecore.records import template_rows

STUDENT_ANALYSIS_SHEET = "학생 분석"
STUDENT_ANALYSIS_FILENAME = "돌봄학생_월간분석.xlsx"
TEMPLATE_SHEET = "양식"
TEMPLATE_FILENAME = "돌봄교실_관리_양식.xlsx"


def student_analysis_frame(stats: Iterable[StudentStat]) -> pd.DataFrame:
    rows = [
        {
            "학생명": s.name,
            "돌봄교실": s.class_name,
            "총 체류시간": minutes_to_korean(s.total_minutes),
            "1일 평균": minutes_to_korean(s.avg_stay),
            "등교 일수": f"{s.days_count}일",
            "심사 대상 여부": "Y" if s.is_screening_target else "N",
        }
        for s in stats
    ]
    return pd.DataFrame(rows, columns=["학생명", "돌봄교실", "총 체류시간", "1일 평균", "등교 일수", "심사 대상 여부"])


def template_frame() -> pd.DataFrame:
    return pd.DataFrame(template_rows())


def to_xlsx_bytes(df: pd.DataFrame, sheet_name: str) -> bytes:
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)
    return buffer.getvalue()
