from __future__ import annotations

import logging
import math
import numbers
import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional, Tuple, Union

import pandas as pd

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60
# Numbers in [1, MINUTES_LITERAL_MAX] are minutes; anything else is a fraction of a day.
MINUTES_LITERAL_MAX = 1000

EMPTY_TOKENS = ("", "-")
ZERO_TOKENS = ("0", "00:00")

RANGE_SPLIT_RE = re.compile(r"[~-]")
HOURS_RE = re.compile(r"(\d+(?:\.\d+)?)시간")
MINUTES_RE = re.compile(r"(\d+)분")
CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")
KOREAN_CLOCK_RE = re.compile(r"(\d{1,2})시(?:(\d{1,2})분)?")
LOOSE_CLOCK_RE = re.compile(r"(\d{1,2}):(\d{2})")
LEADING_INT_RE = re.compile(r"\+?(\d+)")
WHITESPACE_RE = re.compile(r"\s")


@dataclass(frozen=True)
class NumberCell:
    value: float


@dataclass(frozen=True)
class TextCell:
    text: str


RawCell = Union[NumberCell, TextCell]


def round_half_up(value: float) -> int:
    """Round like a spreadsheet does (0.5 -> 1), not like banker's `round`."""
    if not math.isfinite(value):
        raise ValueError(f"cannot round non-finite value {value!r}")
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def is_missing(raw: object) -> bool:
    if raw is None:
        return True
    if isinstance(raw, str):
        return False
    return bool(pd.api.types.is_scalar(raw) and pd.isna(raw))


def as_cell(raw: object) -> RawCell:
    """Wrap a spreadsheet cell (str, number, time, NaN, ...) in the parser's tagged union."""
    if isinstance(raw, (NumberCell, TextCell)):
        return raw
    if is_missing(raw):
        return TextCell("")
    if isinstance(raw, bool):
        return TextCell(str(raw))
    if isinstance(raw, numbers.Real):
        value = float(raw)
        return NumberCell(value) if math.isfinite(value) else TextCell("")
    if isinstance(raw, datetime):
        raw = raw.time()
    if isinstance(raw, time):
        return TextCell(f"{raw.hour:02d}:{raw.minute:02d}:{raw.second:02d}")
    if isinstance(raw, timedelta):
        return NumberCell(raw.total_seconds() / (MINUTES_PER_DAY * 60))
    return TextCell(str(raw))


# ---------------- Matchers ----------------
# Each matcher takes whitespace-free text and returns minutes, or None to fall through.


def _match_range(text: str) -> Optional[int]:
    if "~" not in text and ("-" not in text or text.startswith("-")):
        return None
    parts = RANGE_SPLIT_RE.split(text)
    if len(parts) != 2:
        return None
    start = _parse_text(parts[0])
    end = _parse_text(parts[1])
    if start > 0 and end > start:
        return end - start
    return None


def _match_korean_duration(text: str) -> Optional[int]:
    hours = HOURS_RE.search(text)
    minutes = MINUTES_RE.search(text)
    if not hours and not minutes:
        return None
    total = 0.0
    if hours:
        total += float(hours.group(1)) * 60
    if minutes:
        total += int(minutes.group(1))
    return round_half_up(total)


def _match_clock(text: str) -> Optional[int]:
    match = CLOCK_RE.match(text)
    if not match:
        return None
    return int(match.group(1)) * 60 + int(match.group(2))


def _meridiem_hour(hour: int, text: str) -> int:
    upper = text.upper()
    is_pm = "오후" in text or "PM" in upper
    if is_pm and hour < 12:
        return hour + 12
    if not is_pm and ("오전" in text or "AM" in upper) and hour == 12:
        return 0
    return hour


def _match_korean_clock(text: str) -> Optional[int]:
    match = KOREAN_CLOCK_RE.search(text)
    if not match:
        return None
    hour = _meridiem_hour(int(match.group(1)), text)
    minute = int(match.group(2)) if match.group(2) else 0
    return hour * 60 + minute


def _match_meridiem_clock(text: str) -> Optional[int]:
    match = LOOSE_CLOCK_RE.search(text)
    if not match:
        return None
    hour = _meridiem_hour(int(match.group(1)), text)
    return hour * 60 + int(match.group(2))


def _match_bare_minutes(text: str) -> Optional[int]:
    # A leading minus is not a number here: "-30" is unrecognized and parses to 0.
    if ":" in text:
        return None
    match = LEADING_INT_RE.match(text)
    if not match:
        return None
    return int(match.group(1))


MATCHERS: Tuple[Callable[[str], Optional[int]], ...] = (
    _match_range,
    _match_korean_duration,
    _match_clock,
    _match_korean_clock,
    _match_meridiem_clock,
    _match_bare_minutes,
)


def _parse_text(text: str) -> int:
    text = WHITESPACE_RE.sub("", text)
    if text in EMPTY_TOKENS:
        return 0
    for matcher in MATCHERS:
        try:
            minutes = matcher(text)
        except (ValueError, ArithmeticError):
            # Digit runs too long to convert (inf hours, int-string limit).
            logger.debug("Matcher %s rejected %.40r", matcher.__name__, text)
            continue
        if minutes is not None:
            return minutes
    return 0


def _parse_number(value: float) -> int:
    if value < 0:
        # Negative cells are not times; same as the text rule for "-30".
        return 0
    if value < 1 or value > MINUTES_LITERAL_MAX:
        # Spreadsheet time: the fractional part of a (serial) day.
        return round_half_up((value % 1) * MINUTES_PER_DAY)
    return round_half_up(value)


def parse_time_to_minutes(raw: object) -> int:
    """Convert one raw cell into minutes.

    Accepts clock times ("13:00", "1:05:30", "오후 2시"), durations ("1시간 30분",
    "45분", "90"), ranges ("14:00~15:00" -> 60) and spreadsheet numbers
    (0.5 -> 720). Never raises: anything unrecognized is 0.
    """
    cell = as_cell(raw)
    if isinstance(cell, NumberCell):
        return _parse_number(cell.value)
    return _parse_text(cell.text)


def format_hhmm(minutes: int) -> str:
    hours = (minutes // 60) % 24
    return f"{hours:02d}:{minutes % 60:02d}"


def _display(cell: RawCell) -> str:
    if isinstance(cell, NumberCell):
        value = cell.value
        return str(int(value)) if value.is_integer() else str(value)
    return cell.text


def _is_zero_literal(cell: RawCell) -> bool:
    if isinstance(cell, NumberCell):
        return cell.value == 0
    return cell.text in ZERO_TOKENS


def normalize_time(raw: object) -> str:
    """Canonical HH:MM for display; unparseable input is returned as typed."""
    cell = as_cell(raw)
    if isinstance(cell, TextCell) and cell.text.strip() in EMPTY_TOKENS:
        return "-"
    minutes = parse_time_to_minutes(cell)
    if minutes == 0 and not _is_zero_literal(cell):
        return _display(cell)
    return format_hhmm(minutes)
