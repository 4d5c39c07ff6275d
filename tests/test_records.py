import pytest

from carecore.export import template_frame, to_xlsx_bytes
from carecore.records import (
    ImportFileError,
    build_records,
    filter_records,
    find_value,
    load_records,
    read_attendance_rows,
    records_frame,
    template_rows,
    unique_classes,
    unique_days,
)


def test_find_value_uses_synonyms_in_order():
    row = {"이름": "홍길동", "학생명": ""}
    assert find_value(row, "학생명", "학생 이름", "이름") == "홍길동"


def test_find_value_ignores_spaces_and_case():
    row = {" 참여시작 시간 ": "13:00", "NAME": "x"}
    assert find_value(row, "참여 시작시간") == "13:00"
    assert find_value(row, "name") == "x"


def test_find_value_missing_is_empty_string():
    assert find_value({"요일": "월"}, "귀가시간", "귀가") == ""


def test_build_records_from_template():
    records = build_records(template_rows())

    first, second = records
    assert first.id == "student-0"
    assert first.student_name == "홍길동"
    assert first.class_name == "햇살반"
    assert first.day_of_week == "월, 수, 금"
    assert first.start_time == "13:00"
    assert first.end_time == "17:00"
    assert first.outing_time == "01:00"
    assert first.actual_care_minutes == 180

    assert second.id == "student-1"
    assert second.outing_time == "00:30"
    assert second.actual_care_minutes == 150


def test_build_records_accepts_numbers_and_blank_outing():
    rows = [{"이름": " 이영희 ", "교실": "별반", "요일": "화", "시작": 13 / 24, "하교시간": 0.7083333333333334, "외출": ""}]
    (record,) = build_records(rows)
    assert record.student_name == "이영희"
    assert record.start_time == "13:00"
    assert record.end_time == "17:00"
    assert record.outing_time == "-"
    assert record.actual_care_minutes == 240


def test_unparseable_time_is_kept_for_display():
    (record,) = build_records([{"학생명": "a", "참여 시작시간": "모름", "귀가시간": "17:00"}])
    assert record.start_time == "모름"
    assert record.actual_care_minutes == 17 * 60


def test_load_records_from_csv(tmp_path):
    path = tmp_path / "attendance.csv"
    path.write_text(
        "학생명,돌봄교실명,요일,참여 시작시간,귀가시간,외출시간\n"
        "홍길동,햇살반,\"월, 수\",13:00,17:00,14:00~15:00\n"
        "김철수,바다반,화,13:30,16:30,\n",
        encoding="utf-8",
    )
    records = load_records(path)
    assert [r.student_name for r in records] == ["홍길동", "김철수"]
    assert records[0].actual_care_minutes == 180
    assert records[1].outing_time == "-"
    assert records[1].actual_care_minutes == 180


def test_load_records_from_xlsx_bytes():
    content = to_xlsx_bytes(template_frame(), "양식")
    records = load_records(content, "upload.XLSX")
    assert len(records) == 2
    assert records[0].actual_care_minutes == 180


def test_unsupported_file_type():
    with pytest.raises(ImportFileError, match="unsupported file type"):
        load_records(b"hello", "notes.txt")


def test_empty_files_are_rejected():
    with pytest.raises(ImportFileError, match="empty file"):
        read_attendance_rows(b"", "blank.csv")
    with pytest.raises(ImportFileError, match="empty file"):
        read_attendance_rows("학생명,요일\n".encode("utf-8"), "header_only.csv")


def test_records_frame_and_helpers():
    records = build_records(template_rows())
    df = records_frame(records)
    assert list(df["student_name"]) == ["홍길동", "김철수"]
    assert records_frame([]).empty
    assert unique_classes(records) == ["바다반", "햇살반"]
    assert unique_days(records) == ["월, 수, 금", "화, 목"]


def test_filter_records():
    records = build_records(template_rows())
    assert [r.student_name for r in filter_records(records, q="바다")] == ["김철수"]
    assert [r.student_name for r in filter_records(records, day="화, 목")] == ["김철수"]
    assert len(filter_records(records, day="전체")) == 2


def test_one_oversized_cell_does_not_abort_the_import():
    rows = template_rows()
    rows[1] = dict(rows[1], 외출시간="9" * 5000)
    records = build_records(rows)
    assert len(records) == 2
    assert records[0].actual_care_minutes == 180
    assert records[1].outing_time == "9" * 5000
    assert records[1].actual_care_minutes == 180
