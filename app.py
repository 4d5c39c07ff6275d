from datetime import date
from typing import Dict, List, Optional

import pandas as pd
import streamlit as st

from carecore import settings as cs
from carecore.duration import minutes_to_korean
from carecore.export import (
    STUDENT_ANALYSIS_FILENAME,
    STUDENT_ANALYSIS_SHEET,
    TEMPLATE_FILENAME,
    TEMPLATE_SHEET,
    student_analysis_frame,
    template_frame,
    to_xlsx_bytes,
)
from carecore.metrics_occupancy import ALL_CLASSES, WEEKDAYS, compute_occupancy, default_weekday
from carecore.metrics_overview import compute_overview
from carecore.metrics_students import aggregate_students, compute_students, search_stats
from carecore.records import ImportFileError, StudentRecord, filter_records, load_records, records_frame, unique_classes, unique_days

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


def render_page_header(title: str, breadcrumb: str, chips: Optional[List[str]] = None):
    inject_base_styles()
    st.markdown(
        f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
        unsafe_allow_html=True,
    )
    if chips:
        chip_html = "".join(f"<span class='chip'>{txt}</span>" for txt in chips)
        st.markdown(f"<div class='chip-row'>{chip_html}</div>", unsafe_allow_html=True)


def get_records() -> List[StudentRecord]:
    return st.session_state.get("records", [])


def get_settings() -> cs.AdminSettings:
    if "admin_settings" not in st.session_state:
        st.session_state["admin_settings"] = cs.load_settings(cs.SETTINGS_PATH)
    return st.session_state["admin_settings"]


def set_settings(updated: cs.AdminSettings):
    cs.save_settings(updated, cs.SETTINGS_PATH)
    st.session_state["admin_settings"] = updated


def operator_label(operator: str) -> str:
    return "초과" if operator == "greater" else "미만"


def require_records() -> bool:
    if get_records():
        return True
    st.info("학생 데이터가 없습니다. 엑셀 파일을 업로드하여 시작하세요.")
    return False


# ---------- Pages ----------
def render_dashboard():
    records = get_records()
    payload = compute_overview(records)
    kpis = payload["kpis"]
    render_page_header("대시보드", "돌봄교실 / 대시보드", [f"오늘: {payload['weekday'] or '주말'}"])
    cols = st.columns(4)
    cols[0].metric("전체 학생", kpis["total_students"], help="등록된 누적 학생 수")
    cols[1].metric("운영 교실", kpis["total_classes"], help="현재 활성 돌봄교실")
    cols[2].metric("오늘 돌봄 학생", kpis["today_count"], help="오늘 요일이 포함된 행 수")
    cols[3].metric("평균 돌봄 시간", minutes_to_korean(kpis["avg_care_minutes"]), help="외출 시간 제외")
    if not require_records():
        return
    if "class_students" in payload["charts"]:
        st.vega_lite_chart(payload["charts"]["class_students"], use_container_width=True)
    render_occupancy_section(records)


def render_upload():
    render_page_header("데이터 업로드", "돌봄교실 / 데이터 업로드")
    st.download_button(
        "양식 다운로드",
        data=to_xlsx_bytes(template_frame(), TEMPLATE_SHEET),
        file_name=TEMPLATE_FILENAME,
        mime=XLSX_MIME,
    )
    uploaded = st.file_uploader("엑셀 파일 업로드 (.xlsx, .xls, .csv)", type=["xlsx", "xls", "csv"])
    st.caption("엑셀 파일에 학생명, 돌봄교실명, 요일, 참여 시작시간, 귀가시간, 외출시간 열이 포함되어야 합니다.")
    if uploaded is None:
        return
    if st.session_state.get("uploaded_name") == uploaded.name and get_records():
        st.success(f"{len(get_records())}명의 학생 데이터를 불러왔습니다.")
        return
    try:
        records = load_records(uploaded.getvalue(), uploaded.name)
    except ImportFileError as exc:
        st.error(f"파일을 읽을 수 없습니다: {exc}")
        return
    st.session_state["records"] = records
    st.session_state["uploaded_name"] = uploaded.name
    st.success(f"{len(records)}명의 학생 데이터를 불러왔습니다.")

    records_df = records_frame(records)
    records_df["actual_care"] = records_df["actual_care_minutes"].map(minutes_to_korean)
    st.dataframe(records_df.drop(columns=["id"]), hide_index=True, use_container_width=True)


def render_students():
    render_page_header("학생 분석", "돌봄교실 / 학생 분석")
    if not require_records():
        return
    records = get_records()
    settings = get_settings()
    c1, c2 = st.columns([3, 1])
    q = c1.text_input("이름 또는 교실 검색", "")
    day_options = ["전체"] + unique_days(records)
    day = c2.selectbox("요일", day_options)

    payload = compute_students(settings, records, q=q)
    kpis = payload["kpis"]
    cols = st.columns(3)
    cols[0].metric("학생 수", kpis["students"])
    cols[1].metric("심사 대상", kpis["screening_targets"])
    cols[2].metric("평균 체류", minutes_to_korean(kpis["avg_stay"] or 0))

    table = pd.DataFrame(payload["table"])
    if not table.empty:
        table = table.rename(
            columns={
                "name": "학생명",
                "class_name": "돌봄교실",
                "total_display": "총 체류시간",
                "avg_display": "1일 평균",
                "days_count": "등교 일수",
                "is_screening_target": "심사 대상",
            }
        )
        st.dataframe(
            table[["학생명", "돌봄교실", "총 체류시간", "1일 평균", "등교 일수", "심사 대상"]],
            hide_index=True,
            use_container_width=True,
        )
    if "avg_stay" in payload["charts"]:
        st.vega_lite_chart(payload["charts"]["avg_stay"], use_container_width=True)

    stats = search_stats(aggregate_students(records, settings.screening_criteria), q)
    st.download_button(
        "엑셀로 내보내기",
        data=to_xlsx_bytes(student_analysis_frame(stats), STUDENT_ANALYSIS_SHEET),
        file_name=STUDENT_ANALYSIS_FILENAME,
        mime=XLSX_MIME,
    )

    with st.expander("학생 목록 (일별 기록)"):
        rows = filter_records(records, q=q, day=day)
        st.dataframe(records_frame(rows).drop(columns=["id"]), hide_index=True, use_container_width=True)


def render_occupancy_section(records: List[StudentRecord]):
    settings = get_settings()
    classes = unique_classes(records)
    c1, c2 = st.columns(2)
    selected_class = c1.selectbox(
        "교실 선택",
        [ALL_CLASSES] + classes,
        format_func=lambda c: "전체 교실" if c == ALL_CLASSES else c,
    )
    today_token = default_weekday(date.today())
    weekday = c2.selectbox("요일", WEEKDAYS, index=WEEKDAYS.index(today_token), format_func=lambda d: f"{d}요일")

    payload = compute_occupancy(settings, records, selected_class=selected_class, weekday=weekday)
    kpis = payload["kpis"]
    chips = [f"근무: {settings.caregiver_start} ~ {settings.caregiver_end}", f"{weekday}요일 분석"]
    if payload["capacity"] is not None:
        chips.append(f"최대 수용: {payload['capacity']}명")
    st.markdown("".join(f"<span class='chip'>{c}</span>" for c in chips), unsafe_allow_html=True)

    cols = st.columns(3)
    cols[0].metric("최대 인원", f"{kpis.get('max_count', 0)}명")
    cols[1].metric("피크 시간대", kpis.get("peak_range", "-"))
    if kpis.get("utilization") is not None:
        cols[2].metric("수용률", f"{kpis['utilization']:.0%}")
    if kpis.get("has_warning"):
        st.warning("최대 수용 한도를 초과하는 시간대가 있습니다.")
    if "occupancy" in payload["charts"]:
        st.vega_lite_chart(payload["charts"]["occupancy"], use_container_width=True)
    st.caption(
        f"* 설정된 전담사 근무시간({settings.caregiver_start}~{settings.caregiver_end}) 내 1시간 단위 피크 인원을 기준으로 집계되었습니다."
    )


def render_classes():
    render_page_header("교실 통계", "돌봄교실 / 교실 통계")
    if not require_records():
        return
    render_occupancy_section(get_records())


def render_settings():
    render_page_header("관리 설정", "돌봄교실 / 관리 설정")
    settings = get_settings()

    st.subheader("전담사 근무시간")
    c1, c2, c3 = st.columns([2, 2, 1])
    start = c1.text_input("시작", settings.caregiver_start)
    end = c2.text_input("종료", settings.caregiver_end)
    if c3.button("저장", key="save_hours"):
        set_settings(cs.update_caregiver_hours(settings, start.strip(), end.strip()))
        st.rerun()

    st.subheader("교실별 최대 수용 인원")
    for class_name in unique_classes(get_records()):
        current = settings.get_class_capacity(class_name)
        value = st.number_input(class_name, min_value=1, value=current, step=1, key=f"cap_{class_name}")
        if value != current:
            set_settings(cs.update_capacity(get_settings(), class_name, int(value)))

    st.subheader("심사 기준")
    labels: Dict[str, str] = {cs.CRITERION_AVG_STAY: "1일 평균 체류시간(분)", cs.CRITERION_ABSENCE_DAYS: "결석 일수"}
    for criterion in settings.screening_criteria:
        cols = st.columns([3, 2, 2, 1, 1])
        ctype = cols[0].selectbox(
            "유형",
            list(labels),
            index=list(labels).index(criterion.type),
            format_func=lambda t: labels[t],
            key=f"crit_type_{criterion.id}",
            label_visibility="collapsed",
        )
        operator = cols[1].selectbox(
            "조건",
            list(cs.OPERATORS),
            index=list(cs.OPERATORS).index(criterion.operator),
            format_func=operator_label,
            key=f"crit_op_{criterion.id}",
            label_visibility="collapsed",
        )
        value = cols[2].number_input(
            "기준값", value=int(criterion.value), step=1, key=f"crit_value_{criterion.id}", label_visibility="collapsed"
        )
        if cols[3].button("저장", key=f"save_crit_{criterion.id}"):
            set_settings(
                cs.update_criterion(get_settings(), criterion.id, type=ctype, value=int(value), operator=operator)
            )
            st.rerun()
        if cols[4].button("삭제", key=f"del_{criterion.id}"):
            set_settings(cs.remove_criterion(get_settings(), criterion.id))
            st.rerun()

    with st.form("add_criterion"):
        cols = st.columns(3)
        ctype = cols[0].selectbox("유형", list(labels), format_func=lambda t: labels[t])
        operator = cols[1].selectbox("조건", list(cs.OPERATORS), format_func=operator_label)
        value = cols[2].number_input("기준값", min_value=0, value=60, step=1)
        if st.form_submit_button("기준 추가"):
            set_settings(cs.add_criterion(get_settings(), ctype, int(value), operator))
            st.rerun()

    with st.expander("설정 원본 (JSON)"):
        st.json(cs.settings_to_dict(get_settings()))


# ---------- UI setup ----------
st.set_page_config(page_title="돌봄교실 관리 대시보드", layout="wide")
inject_base_styles()
st.title("돌봄교실 관리 대시보드")
st.caption("출결 엑셀을 업로드하면 돌봄 시간, 피크 인원, 심사 대상을 계산합니다.")

PAGES = {
    "대시보드": render_dashboard,
    "데이터 업로드": render_upload,
    "학생 분석": render_students,
    "교실 통계": render_classes,
    "관리 설정": render_settings,
}

with st.sidebar:
    st.markdown("### Navigate")
    nav_choice = st.radio("Navigate", list(PAGES), index=0, label_visibility="collapsed")
    st.markdown("---")
    if get_records():
        st.caption(f"불러온 기록: {len(get_records())}행")
        st.caption(f"파일: {st.session_state.get('uploaded_name', '-')}")

PAGES[nav_choice]()
