# trip_dates/services/date_normalization_service.py
from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from trip_dates.services.errors import SchedulingValidationError


# ---------- Lookup tables ----------

_MONTHS = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}

_SATURDAY = 5  # date.weekday()

_EMPTY_TEXT_MESSAGE = (
    'Please enter a date range. Examples: "Feb 7-9", "early March", '
    '"last week of June", "April"'
)

_MULTI_RANGE_PATTERNS = [
    re.compile(r"\bor\b", re.IGNORECASE),
    re.compile(r"\beither\b", re.IGNORECASE),
    re.compile(r"\banytime\b", re.IGNORECASE),
    re.compile(r"\bflexible\b", re.IGNORECASE),
    re.compile(r"\bwhenever\b", re.IGNORECASE),
    re.compile(r",\s*(and|&|also)", re.IGNORECASE),
    re.compile(r"\d+\s*[-–]\s*\d+\s*(?:or|,)\s*\d+\s*[-–]\s*\d+", re.IGNORECASE),
]

_SEP = r"(?:to|through|–|-)"

_ISO_RANGE = re.compile(
    rf"^(\d{{4}})-(\d{{2}})-(\d{{2}})\s*{_SEP}\s*(\d{{4}})-(\d{{2}})-(\d{{2}})$",
    re.IGNORECASE,
)
_SAME_MONTH = re.compile(
    rf"^([a-z]+)\s+(\d{{1,2}})\s*{_SEP}\s*(\d{{1,2}})(?:\s*,?\s*(\d{{4}}))?$",
    re.IGNORECASE,
)
_CROSS_MONTH = re.compile(
    rf"^([a-z]+)\s+(\d{{1,2}})\s*{_SEP}\s*([a-z]+)\s+(\d{{1,2}})(?:\s*,?\s*(\d{{4}}))?$",
    re.IGNORECASE,
)
_SINGLE_DATE = re.compile(r"^([a-z]+)\s+(\d{1,2})(?:\s*,?\s*(\d{4}))?$", re.IGNORECASE)
_RELATIVE_MONTH = re.compile(r"^(early|mid|late)\s+([a-z]+)(?:\s*,?\s*(\d{4}))?$", re.IGNORECASE)
_LAST_WEEK = re.compile(
    r"^(?:the\s+)?last\s+week\s+(?:of\s+)?([a-z]+)(?:\s*,?\s*(\d{4}))?$",
    re.IGNORECASE,
)
_WEEKEND = re.compile(
    r"^(?:the\s+)?(first|1st|second|2nd|last)\s+weekend\s+(?:of\s+)?([a-z]+)(?:\s*,?\s*(\d{4}))?$",
    re.IGNORECASE,
)
_BARE_MONTH = re.compile(r"^([a-z]+)(?:\s*,?\s*(\d{4}))?$", re.IGNORECASE)


@dataclass
class NormalizedWindow:
    start: date
    end: date
    precision: str  # "exact" | "approx"
    is_bare_month: bool = False

    @property
    def day_count(self) -> int:
        return (self.end - self.start).days + 1


# ---------- Helpers ----------


def _parse_month(token: str) -> Optional[int]:
    return _MONTHS.get(token.strip().lower())


def _last_day(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _target_year(
    month: int,
    year_str: Optional[str],
    *,
    start_bound: Optional[date],
    today: date,
) -> int:
    """
    Explicit year wins, then the trip's start bound, then "this year unless
    that month is already behind us".
    """
    if year_str:
        return int(year_str)
    if start_bound is not None:
        return start_bound.year
    if month < today.month:
        return today.year + 1
    return today.year


def _safe_date(year: int, month: int, day: int) -> date:
    try:
        return date(year, month, day)
    except ValueError as e:
        raise SchedulingValidationError(f"Invalid calendar date: {year}-{month:02d}-{day:02d}") from e


def _contains_multi_range(text: str) -> bool:
    return any(p.search(text) for p in _MULTI_RANGE_PATTERNS)


def _parse_explicit(text: str, start_bound: Optional[date], today: date) -> Optional[NormalizedWindow]:
    m = _ISO_RANGE.match(text)
    if m:
        y1, m1, d1, y2, m2, d2 = (int(g) for g in m.groups())
        return NormalizedWindow(_safe_date(y1, m1, d1), _safe_date(y2, m2, d2), "exact")

    m = _SAME_MONTH.match(text)
    if m:
        month_str, day1, day2, year_str = m.groups()
        month = _parse_month(month_str)
        if month is not None:
            year = _target_year(month, year_str, start_bound=start_bound, today=today)
            return NormalizedWindow(
                _safe_date(year, month, int(day1)),
                _safe_date(year, month, int(day2)),
                "exact",
            )

    m = _CROSS_MONTH.match(text)
    if m:
        month1_str, day1, month2_str, day2, year_str = m.groups()
        month1 = _parse_month(month1_str)
        month2 = _parse_month(month2_str)
        if month1 is not None and month2 is not None:
            year1 = _target_year(month1, year_str, start_bound=start_bound, today=today)
            # Dec -> Jan rolls over into the next year
            year2 = year1 + 1 if month2 < month1 else year1
            return NormalizedWindow(
                _safe_date(year1, month1, int(day1)),
                _safe_date(year2, month2, int(day2)),
                "exact",
            )

    m = _SINGLE_DATE.match(text)
    if m:
        month_str, day_str, year_str = m.groups()
        month = _parse_month(month_str)
        if month is not None:
            year = _target_year(month, year_str, start_bound=start_bound, today=today)
            day = _safe_date(year, month, int(day_str))
            return NormalizedWindow(day, day, "exact")

    return None


def _parse_relative_month(text: str, start_bound: Optional[date], today: date) -> Optional[NormalizedWindow]:
    m = _RELATIVE_MONTH.match(text)
    if not m:
        return None
    position, month_str, year_str = m.groups()
    month = _parse_month(month_str)
    if month is None:
        return None

    year = _target_year(month, year_str, start_bound=start_bound, today=today)
    position = position.lower()
    if position == "early":
        start_day, end_day = 1, 7
    elif position == "mid":
        start_day, end_day = 10, 20
    else:
        start_day, end_day = 21, _last_day(year, month)

    return NormalizedWindow(date(year, month, start_day), date(year, month, end_day), "approx")


def _parse_last_week(text: str, start_bound: Optional[date], today: date) -> Optional[NormalizedWindow]:
    m = _LAST_WEEK.match(text)
    if not m:
        return None
    month_str, year_str = m.groups()
    month = _parse_month(month_str)
    if month is None:
        return None

    year = _target_year(month, year_str, start_bound=start_bound, today=today)
    last = _last_day(year, month)
    return NormalizedWindow(date(year, month, last - 6), date(year, month, last), "approx")


def _parse_weekend(text: str, start_bound: Optional[date], today: date) -> Optional[NormalizedWindow]:
    m = _WEEKEND.match(text)
    if not m:
        return None
    ordinal, month_str, year_str = m.groups()
    month = _parse_month(month_str)
    if month is None:
        return None

    year = _target_year(month, year_str, start_bound=start_bound, today=today)
    ordinal = ordinal.lower()

    if ordinal == "last":
        last = date(year, month, _last_day(year, month))
        saturday = last - timedelta(days=(last.weekday() - _SATURDAY) % 7)
    else:
        first = date(year, month, 1)
        saturday = first + timedelta(days=(_SATURDAY - first.weekday()) % 7)
        if ordinal in ("second", "2nd"):
            saturday += timedelta(days=7)
            if saturday.month != month:
                return None

    # Sunday may spill into the next month
    return NormalizedWindow(saturday, saturday + timedelta(days=1), "approx")


def _parse_bare_month(text: str, start_bound: Optional[date], today: date) -> Optional[NormalizedWindow]:
    m = _BARE_MONTH.match(text)
    if not m:
        return None
    month_str, year_str = m.groups()
    month = _parse_month(month_str)
    if month is None:
        return None

    year = _target_year(month, year_str, start_bound=start_bound, today=today)
    return NormalizedWindow(
        date(year, month, 1),
        date(year, month, _last_day(year, month)),
        "approx",
        is_bare_month=True,
    )


_PARSERS = (
    _parse_explicit,
    _parse_relative_month,
    _parse_last_week,
    _parse_weekend,
    _parse_bare_month,
)


# ---------- Public entry point ----------


def normalize_window_text(
    text: Optional[str],
    *,
    max_window_days: int,
    start_bound: Optional[date] = None,
    today: Optional[date] = None,
) -> Optional[NormalizedWindow]:
    """
    Turn free-form date text ("Feb 7-9", "early March", "last weekend of
    April", "June") into a concrete date range. Fully deterministic.

    Returns:
      - NormalizedWindow when the text matched one of the known forms
      - None when nothing matched (caller stores it as unstructured)

    Raises SchedulingValidationError for empty text, several ranges in one
    submission, end before start, or a range longer than `max_window_days`
    (bare months are exempt, they are broad on purpose).
    """
    if not text or not text.strip():
        raise SchedulingValidationError(_EMPTY_TEXT_MESSAGE)

    trimmed = text.strip()
    if _contains_multi_range(trimmed):
        raise SchedulingValidationError(
            "Please suggest one date range at a time. You can add another option separately."
        )

    today = today or date.today()

    result: Optional[NormalizedWindow] = None
    for parser in _PARSERS:
        result = parser(trimmed, start_bound, today)
        if result is not None:
            break

    if result is None:
        return None

    if result.end < result.start:
        raise SchedulingValidationError("End date must be on or after start date.")

    if not result.is_bare_month and result.day_count > max_window_days:
        raise SchedulingValidationError(
            f"That's {result.day_count} days, which is longer than the "
            f"{max_window_days}-day limit. Try a shorter range.",
            data={"dayCount": result.day_count, "maxWindowDays": max_window_days},
        )

    return result
