# trip_dates/services/overlap_service.py
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from trip_dates.models.date_window import DateWindow


def inclusive_days(start: date, end: date) -> int:
    return (end - start).days + 1


def overlap_days(a_start: date, a_end: date, b_start: date, b_end: date) -> int:
    """
    Number of calendar days shared by two inclusive ranges (0 if disjoint).
    """
    start = max(a_start, b_start)
    end = min(a_end, b_end)
    if start > end:
        return 0
    return inclusive_days(start, end)


def compute_overlap_score(
    candidate_start: date,
    candidate_end: date,
    existing_start: date,
    existing_end: date,
) -> float:
    """
    Similarity in [0, 1]:

        overlap_days / max(len(candidate), len(existing))

    Identical ranges score 1.0. A short range inside a much longer one
    scores low, so "the whole of March" does not swallow every
    weekend suggestion.
    """
    overlap = overlap_days(candidate_start, candidate_end, existing_start, existing_end)
    if overlap == 0:
        return 0.0
    longest = max(
        inclusive_days(candidate_start, candidate_end),
        inclusive_days(existing_start, existing_end),
    )
    return overlap / longest


@dataclass
class SimilarWindow:
    window_id: int
    score: float


def find_most_similar_window(
    candidate_start: date,
    candidate_end: date,
    existing_windows: Iterable[DateWindow],
    threshold: float,
) -> Optional[SimilarWindow]:
    """
    Best-scoring existing window at or above `threshold`, or None.

    Blockers and unstructured windows are skipped. Equal scores keep the
    earliest-created window. The threshold is applied to the raw score;
    the returned score is rounded to 2 decimals for display.
    """
    best: Optional[DateWindow] = None
    best_score = 0.0

    ordered = sorted(existing_windows, key=lambda w: (w.created_at, w.id))
    for window in ordered:
        if window.is_blocker or window.is_unstructured:
            continue

        score = compute_overlap_score(
            candidate_start,
            candidate_end,
            window.range_start,
            window.range_end,
        )
        if score >= threshold and score > best_score:
            best = window
            best_score = score

    if best is None:
        return None

    return SimilarWindow(window_id=best.id, score=round(best_score, 2))
