from __future__ import annotations

from carecore.timeparse import MINUTES_PER_DAY, parse_time_to_minutes


def calculate_actual_care_time(start_time: object, end_time: object, outing_time: object) -> int:
    """Supervised minutes between start and end, minus the outing. Never negative."""
    start = parse_time_to_minutes(start_time)
    end = parse_time_to_minutes(end_time)
    outing = parse_time_to_minutes(outing_time)

    # An end before the start means the stay crossed midnight.
    duration = end - start if end >= start else (MINUTES_PER_DAY - start) + end
    return max(0, duration - outing)


def minutes_to_korean(minutes: int) -> str:
    if minutes <= 0:
        return "0시간 0분"
    hours, mins = divmod(int(minutes), 60)
    if hours == 0:
        return f"{mins}분"
    return f"{hours}시간 {mins}분"
