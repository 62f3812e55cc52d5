"""
Week calendar generation for the snapshot window.

Week starts are computed as whole-week offsets from a fixed epoch, so the
alignment does not depend on locale or `firstweekday` settings. The epoch
1900-01-01 is a Monday; shifting it by `week_start_day` days gives the anchor
for any other alignment.
"""

from __future__ import annotations

from calendar import monthrange
from datetime import date, datetime, timedelta
from typing import List, Tuple, Union

from spn_coverage.errors import InvalidWindowError

WEEK = timedelta(days=7)
_EPOCH = datetime(1900, 1, 1)

WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

DateLike = Union[date, datetime]


def _as_date(value: DateLike) -> date:
    return value.date() if isinstance(value, datetime) else value


def _check_week_start_day(week_start_day: int) -> None:
    if not 0 <= week_start_day <= 6:
        raise InvalidWindowError(
            f"week_start_day must be between 0 (Monday) and 6 (Sunday), got {week_start_day}"
        )


def parse_weekday(value: Union[int, str]) -> int:
    """
    Resolve a weekday given as 0-6 or as a (possibly abbreviated) English name.

    >>> parse_weekday("sun")
    6
    """
    if isinstance(value, int):
        _check_week_start_day(value)
        return value
    text = value.strip().lower()
    if text.isdigit():
        return parse_weekday(int(text))
    if len(text) >= 3:
        for index, name in enumerate(WEEKDAY_NAMES):
            if name.startswith(text):
                return index
    raise InvalidWindowError(f"Unknown weekday '{value}'. Use 0-6 or one of: {', '.join(WEEKDAY_NAMES)}")


def align_to_week_start(value: DateLike, week_start_day: int = 0) -> datetime:
    """
    Midnight of the same-or-preceding `week_start_day` (0=Monday) for `value`.
    """
    _check_week_start_day(week_start_day)
    day = _as_date(value)
    anchor = _EPOCH + timedelta(days=week_start_day)
    # Floor division keeps dates before the anchor on the preceding boundary.
    weeks = (datetime(day.year, day.month, day.day) - anchor).days // 7
    return anchor + weeks * WEEK


def generate_week_starts(
    start_date: DateLike, end_date: DateLike, week_start_day: int = 0
) -> List[datetime]:
    """
    Ordered week-start timestamps covering [start_date, end_date].

    The first element is the aligned start of the week containing
    `start_date`; each following element is seven days later, and generation
    stops once the next candidate would fall after `end_date`.

    Raises
    ------
    InvalidWindowError
        If `start_date` is after `end_date` or `week_start_day` is out of range.
    """
    start, end = _as_date(start_date), _as_date(end_date)
    if start > end:
        raise InvalidWindowError(
            f"Reporting window is inverted: start {start.isoformat()} is after end {end.isoformat()}"
        )

    current = align_to_week_start(start, week_start_day)
    week_starts = [current]
    while True:
        current = current + WEEK
        if current.date() > end:
            break
        week_starts.append(current)
    return week_starts


def shift_months(value: date, months: int) -> date:
    """
    Move `value` by whole calendar months, clamping to the last day of the month.

    >>> shift_months(date(2024, 3, 31), -1)
    datetime.date(2024, 2, 29)
    """
    month_index = value.year * 12 + (value.month - 1) + months
    year, month_zero = divmod(month_index, 12)
    last_day = monthrange(year, month_zero + 1)[1]
    return date(year, month_zero + 1, min(value.day, last_day))


def reporting_window(now: DateLike, window_months: int) -> Tuple[date, date]:
    """
    (start_date, end_date) for a window reaching `window_months` back from `now`.
    """
    if window_months < 0:
        raise InvalidWindowError(f"window_months must be zero or positive, got {window_months}")
    end = _as_date(now)
    return shift_months(end, -window_months), end


__all__ = [
    "WEEK",
    "WEEKDAY_NAMES",
    "align_to_week_start",
    "generate_week_starts",
    "parse_weekday",
    "reporting_window",
    "shift_months",
]
