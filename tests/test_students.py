from carecore.metrics_students import (
    aggregate_students,
    compute_students,
    is_screening_target,
    matches_criterion,
    search_stats,
)
from carecore.records import StudentRecord
from carecore.settings import AdminSettings, ScreeningCriterion


def _record(i, name, class_name, minutes, day="월"):
    return StudentRecord(
        id=f"student-{i}",
        student_name=name,
        class_name=class_name,
        day_of_week=day,
        start_time="13:00",
        end_time="17:00",
        outing_time="-",
        actual_care_minutes=minutes,
    )


AVG_LESS_60 = ScreeningCriterion(id="a", type="avg_stay_time", value=60, operator="less")
AVG_GREATER_60 = ScreeningCriterion(id="b", type="avg_stay_time", value=60, operator="greater")


def test_short_stay_is_flagged():
    records = [_record(0, "A", "햇살반", 30), _record(1, "A", "햇살반", 70)]

    (less,) = aggregate_students(records, [AVG_LESS_60])
    assert less.total_minutes == 100
    assert less.days_count == 2
    assert less.avg_stay == 50
    assert less.is_screening_target is True

    (greater,) = aggregate_students(records, [AVG_GREATER_60])
    assert greater.is_screening_target is False


def test_average_rounds_half_up():
    records = [_record(0, "A", "햇살반", 90), _record(1, "A", "햇살반", 91)]
    (stat,) = aggregate_students(records, [])
    assert stat.avg_stay == 91
    assert stat.is_screening_target is False


def test_groups_by_student_and_class_in_first_seen_order():
    records = [
        _record(0, "B", "바다반", 120),
        _record(1, "A", "햇살반", 100),
        _record(2, "B", "햇살반", 60),
        _record(3, "B", "바다반", 180),
    ]
    stats = aggregate_students(records, [])
    assert [(s.name, s.class_name, s.days_count) for s in stats] == [
        ("B", "바다반", 2),
        ("A", "햇살반", 1),
        ("B", "햇살반", 1),
    ]
    assert stats[0].avg_stay == 150


def test_names_containing_separators_stay_separate():
    records = [_record(0, "a_b", "c", 100), _record(1, "a", "b_c", 200)]
    stats = aggregate_students(records, [])
    assert [(s.name, s.class_name, s.total_minutes) for s in stats] == [("a_b", "c", 100), ("a", "b_c", 200)]


def test_absence_days_criterion():
    greater = ScreeningCriterion(id="x", type="absence_days", value=3, operator="greater")
    less = ScreeningCriterion(id="y", type="absence_days", value=3, operator="less")
    assert matches_criterion(greater, avg_stay=200, days_count=2) is True
    assert matches_criterion(greater, avg_stay=200, days_count=3) is False
    assert matches_criterion(less, avg_stay=200, days_count=4) is True
    assert matches_criterion(less, avg_stay=200, days_count=3) is False


def test_unknown_criterion_type_never_matches():
    odd = ScreeningCriterion(id="z", type="late_count", value=0, operator="greater")
    assert matches_criterion(odd, avg_stay=500, days_count=10) is False
    assert is_screening_target([odd, AVG_LESS_60], avg_stay=30, days_count=10) is True
    assert is_screening_target([], avg_stay=0, days_count=0) is False


def test_empty_records():
    assert aggregate_students([], [AVG_LESS_60]) == []


def test_search_stats():
    stats = aggregate_students([_record(0, "홍길동", "햇살반", 100), _record(1, "김철수", "바다반", 100)], [])
    assert [s.name for s in search_stats(stats, "길동")] == ["홍길동"]
    assert [s.name for s in search_stats(stats, "바다")] == ["김철수"]
    assert len(search_stats(stats, "  ")) == 2


def test_compute_students_payload():
    records = [
        _record(0, "A", "햇살반", 30),
        _record(1, "A", "햇살반", 50),
        _record(2, "B", "햇살반", 200, day="화"),
        _record(3, "B", "햇살반", 200, day="수"),
        _record(4, "B", "햇살반", 200, day="목"),
        _record(5, "B", "햇살반", 200, day="금"),
    ]
    payload = compute_students(AdminSettings(), records)

    assert payload["kpis"] == {"students": 2, "screening_targets": 1, "avg_stay": 120}
    rows = {row["name"]: row for row in payload["table"]}
    assert rows["A"]["is_screening_target"] is True
    assert rows["A"]["avg_display"] == "40분"
    assert rows["B"]["is_screening_target"] is False
    assert rows["B"]["total_display"] == "13시간 20분"
    assert "avg_stay" in payload["charts"]


def test_compute_students_without_matches():
    payload = compute_students(AdminSettings(), [_record(0, "A", "햇살반", 30)], q="없음")
    assert payload["kpis"] == {"students": 0, "screening_targets": 0, "avg_stay": None}
    assert payload["table"] == []
    assert payload["charts"] == {}
