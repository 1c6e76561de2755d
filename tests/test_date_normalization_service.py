# tests/test_date_normalization_service.py
from datetime import date

import pytest

from trip_dates.services.date_normalization_service import normalize_window_text
from trip_dates.services.errors import SchedulingValidationError

TODAY = date(2025, 1, 15)


def _norm(text, **kwargs):
    kwargs.setdefault("max_window_days", 14)
    kwargs.setdefault("today", TODAY)
    return normalize_window_text(text, **kwargs)


def test_iso_range_is_exact():
    result = _norm("2025-03-10 to 2025-03-15")
    assert result.start == date(2025, 3, 10)
    assert result.end == date(2025, 3, 15)
    assert result.precision == "exact"


def test_same_month_range_uses_trip_start_bound_year():
    result = _norm("Feb 7-9", start_bound=date(2026, 1, 1))
    assert (result.start, result.end) == (date(2026, 2, 7), date(2026, 2, 9))
    assert result.precision == "exact"


def test_month_already_past_rolls_to_next_year():
    result = _norm("Jan 3-5", today=date(2025, 6, 1))
    assert result.start == date(2026, 1, 3)


def test_cross_month_range_over_new_year():
    result = _norm("Dec 28 - Jan 3")
    assert result.start == date(2025, 12, 28)
    assert result.end == date(2026, 1, 3)


def test_relative_month_forms_are_approx():
    early = _norm("early March")
    mid = _norm("mid March")
    late = _norm("late February")

    assert (early.start, early.end) == (date(2025, 3, 1), date(2025, 3, 7))
    assert (mid.start, mid.end) == (date(2025, 3, 10), date(2025, 3, 20))
    assert (late.start, late.end) == (date(2025, 2, 21), date(2025, 2, 28))
    assert {early.precision, mid.precision, late.precision} == {"approx"}


def test_last_week_of_month():
    result = _norm("last week of June")
    assert (result.start, result.end) == (date(2025, 6, 24), date(2025, 6, 30))


def test_weekends():
    first = _norm("first weekend of March 2025")
    last = _norm("last weekend of April 2025")

    # 2025-03-01 is a Saturday
    assert (first.start, first.end) == (date(2025, 3, 1), date(2025, 3, 2))
    assert (last.start, last.end) == (date(2025, 4, 26), date(2025, 4, 27))


def test_bare_month_is_exempt_from_length_limit():
    result = _norm("April")
    assert (result.start, result.end) == (date(2025, 4, 1), date(2025, 4, 30))
    assert result.is_bare_month


def test_unrecognized_text_returns_none():
    assert _norm("sometime in the summer") is None


@pytest.mark.parametrize(
    "text",
    [
        "",
        "   ",
        "Feb 7-9 or Feb 14-16",
        "March 1-20",
        "Feb 30",
        "Mar 15-10",
    ],
)
def test_invalid_text_raises_validation_error(text):
    with pytest.raises(SchedulingValidationError):
        _norm(text)


def test_too_long_range_reports_limit():
    with pytest.raises(SchedulingValidationError) as exc:
        _norm("2025-03-01 to 2025-03-20")
    assert exc.value.data == {"dayCount": 20, "maxWindowDays": 14}
    assert exc.value.status_code == 400


def test_same_month_range_with_trailing_year():
    long_form = _norm("February 7 - 9, 2026")
    short_form = _norm("Feb 7-9, 2026")

    assert (long_form.start, long_form.end) == (date(2026, 2, 7), date(2026, 2, 9))
    assert (short_form.start, short_form.end) == (date(2026, 2, 7), date(2026, 2, 9))
    assert long_form.precision == "exact"


def test_two_ranges_separated_by_comma_are_rejected():
    with pytest.raises(SchedulingValidationError):
        _norm("Feb 7-9, 14-16")
