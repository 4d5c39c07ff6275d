from datetime import datetime, time

import pytest

from carecore.timeparse import (
    NumberCell,
    TextCell,
    as_cell,
    format_hhmm,
    normalize_time,
    parse_time_to_minutes,
    round_half_up,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("13:00", 780),
        ("9:05", 545),
        ("13:00:45", 780),
        (" 14 : 30 ", 870),
        ("1시간 30분", 90),
        ("30분", 30),
        ("1.5시간", 90),
        ("2시간", 120),
        ("14:00~15:00", 60),
        ("14:00-15:00", 60),
        ("14:00 ~ 15:30", 90),
        ("90", 90),
        ("45abc", 45),
    ],
)
def test_parses_common_text_shapes(raw, expected):
    assert parse_time_to_minutes(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "-", "   ", "abc", "1:2", "-30", float("nan")])
def test_unrecognized_input_is_zero(raw):
    assert parse_time_to_minutes(raw) == 0


def test_korean_clock_with_meridiem():
    assert parse_time_to_minutes("오후 2시") == 14 * 60
    assert parse_time_to_minutes("14시") == 14 * 60
    assert parse_time_to_minutes("12시") == 12 * 60
    assert parse_time_to_minutes("오전 12시") == 0
    assert parse_time_to_minutes("오후 12시") == 12 * 60


def test_meridiem_digital_clock():
    assert parse_time_to_minutes("2:30 PM") == 14 * 60 + 30
    assert parse_time_to_minutes("오후 3:10") == 15 * 60 + 10
    assert parse_time_to_minutes("12:15am") == 15
    assert parse_time_to_minutes("오전 9:00") == 9 * 60


def test_minutes_phrase_takes_priority_over_korean_clock():
    # "분" anywhere selects the duration reading before the clock reading.
    assert parse_time_to_minutes("오후 3시 20분") == 20


def test_failed_range_falls_through_to_later_rules():
    # End before start is not a range; the first clock in the text is used instead.
    assert parse_time_to_minutes("15:00~14:00") == 15 * 60
    assert parse_time_to_minutes("2024-01-01") == 2024


def test_range_accepts_korean_parts():
    assert parse_time_to_minutes("오후2:00~오후3:30") == 90


@pytest.mark.parametrize(
    "value, expected",
    [
        (0, 0),
        (0.5, 720),
        (13 / 24, 780),
        (0.5416666666666666, 780),
        (45000.75, 1080),
        (1000.5, 720),
        (1, 1),
        (90, 90),
        (89.6, 90),
        (1000, 1000),
        (1440, 0),
    ],
)
def test_numbers_use_fraction_or_minutes_threshold(value, expected):
    assert parse_time_to_minutes(value) == expected


def test_spreadsheet_time_objects():
    assert parse_time_to_minutes(time(13, 30)) == 810
    assert parse_time_to_minutes(datetime(2024, 3, 4, 9, 15, 40)) == 555


def test_tagged_cells():
    assert as_cell(12) == NumberCell(12.0)
    assert as_cell("12") == TextCell("12")
    assert as_cell(None) == TextCell("")
    assert as_cell(float("inf")) == TextCell("")
    assert parse_time_to_minutes(TextCell("13:00")) == 780
    assert parse_time_to_minutes(NumberCell(0.25)) == 360


def test_round_half_up():
    assert round_half_up(0.5) == 1
    assert round_half_up(2.5) == 3
    assert round_half_up(90.49) == 90


@pytest.mark.parametrize("value", ["00:00", "07:05", "13:00", "18:30", "23:59"])
def test_normalize_is_idempotent_on_canonical_times(value):
    assert normalize_time(value) == value


def test_normalize_formats_parsed_values():
    assert normalize_time("9:05") == "09:05"
    assert normalize_time("1시간 30분") == "01:30"
    assert normalize_time("14:00~15:00") == "01:00"
    assert normalize_time("오후 2시") == "14:00"
    assert normalize_time(0.5) == "12:00"
    assert normalize_time("25:30") == "01:30"
    assert normalize_time(time(14, 0)) == "14:00"


def test_normalize_keeps_unparseable_text():
    assert normalize_time("모름") == "모름"
    assert normalize_time("abc") == "abc"
    assert normalize_time(1500) == "1500"


def test_normalize_zero_and_empty():
    assert normalize_time("0") == "00:00"
    assert normalize_time(0) == "00:00"
    assert normalize_time("00:00") == "00:00"
    assert normalize_time("") == "-"
    assert normalize_time("-") == "-"
    assert normalize_time(None) == "-"


def test_format_hhmm_wraps_days():
    assert format_hhmm(0) == "00:00"
    assert format_hhmm(1440 + 65) == "01:05"


@pytest.mark.parametrize("raw", ["9" * 5000, "9" * 5000 + "분", "+" + "9" * 5000])
def test_oversized_digit_runs_are_unrecognized(raw):
    assert parse_time_to_minutes(raw) == 0
    assert normalize_time(raw) == raw


@pytest.mark.parametrize(
    "raw, expected",
    [
        # the hours overflow, so the later clock rule reads "99시"
        ("9" * 400 + "시간", 99 * 60),
        ("1시간 " + "9" * 5000 + "분", 60),
        ("13:00~" + "9" * 5000, 780),
    ],
)
def test_oversized_parts_fall_through_to_later_rules(raw, expected):
    assert parse_time_to_minutes(raw) == expected


def test_round_half_up_rejects_non_finite():
    with pytest.raises(ValueError):
        round_half_up(float("inf"))
    with pytest.raises(ValueError):
        round_half_up(float("nan"))


@pytest.mark.parametrize("value", [-0.25, -30, -1500.5])
def test_negative_numbers_are_zero(value):
    assert parse_time_to_minutes(value) == 0
