"""Calendar helpers for picking the comparison period and counting active days."""

import calendar
from datetime import date, timedelta
from typing import Optional, Tuple, Union

from .errors import InvalidInputError

MONTH_NAMES = list(calendar.month_name)[1:]


def month_number(month: Union[int, str]) -> int:
    """
    Month number 1-12 from an int, a numeric string or a month name.

    >>> month_number("March")
    3
    """
    if isinstance(month, str):
        text = month.strip()
        if text.isdigit():
            month = int(text)
        else:
            for index, name in enumerate(MONTH_NAMES, start=1):
                if text.lower() in (name.lower(), name[:3].lower()):
                    return index
            raise InvalidInputError(f"Unknown month: {month!r}")
    if not 1 <= int(month) <= 12:
        raise InvalidInputError(f"Month out of range: {month!r}")
    return int(month)


def previous_month(year: int, month: Union[int, str]) -> Tuple[int, int]:
    """(year, month) of the month before; January wraps to last December."""
    number = month_number(month)
    if number == 1:
        return int(year) - 1, 12
    return int(year), number - 1


def _shift_back_one_month(day: date) -> date:
    year, month = previous_month(day.year, day.month)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def is_complete_month(start: date, end: date) -> bool:
    """True when ``start``..``end`` spans exactly one calendar month."""
    return (
        start.day == 1
        and start.year == end.year
        and start.month == end.month
        and end.day == calendar.monthrange(end.year, end.month)[1]
    )


def previous_date_range(start: date, end: date) -> Tuple[date, date]:
    """
    Comparison window for a custom date range.

    - A full calendar month maps to the full previous month
      (Sep 1-30 -> Aug 1-31).
    - A partial range is shifted back one month day by day, clamped
      to the end of the shorter month (Oct 1-20 -> Sep 1-20,
      Mar 31 -> Feb 28/29).
    """
    if end < start:
        raise InvalidInputError(f"End date {end} is before start date {start}")

    if is_complete_month(start, end):
        prev_end = start - timedelta(days=1)
        return prev_end.replace(day=1), prev_end
    return _shift_back_one_month(start), _shift_back_one_month(end)


def month_date_range(year: int, month: Union[int, str]) -> Tuple[date, date]:
    """First and last day of a calendar month."""
    number = month_number(month)
    return date(int(year), number, 1), date(int(year), number, calendar.monthrange(int(year), number)[1])


def days_in_month(year: int, month: Union[int, str]) -> int:
    """Number of days in a calendar month, leap years included."""
    return calendar.monthrange(int(year), month_number(month))[1]


def active_days(
    year: int,
    month: Union[int, str],
    last_data_date: Optional[date] = None,
    today: Optional[date] = None,
) -> int:
    """
    Days a monthly total has accumulated over.

    A month other than the current one counts all its days. For the
    ongoing month it is the day of ``last_data_date`` (the latest date
    with data), capped at today's day; without a data date, today's day.

    Raises:
        InvalidInputError: If ``last_data_date`` falls outside the month
    """
    number = month_number(month)
    total = days_in_month(year, number)
    if last_data_date is not None and (last_data_date.year, last_data_date.month) != (int(year), number):
        raise InvalidInputError(
            f"Last data date {last_data_date} is outside {int(year)}-{number:02d}"
        )

    today = today or date.today()
    if (today.year, today.month) != (int(year), number):
        return total
    if last_data_date is None:
        return today.day
    return min(last_data_date.day, today.day)
