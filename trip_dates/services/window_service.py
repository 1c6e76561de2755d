# trip_dates/services/window_service.py
from dataclasses import dataclass
from datetime import date
from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from trip_dates.config import Settings, get_settings
from trip_dates.models.date_window import DateWindow, WindowPrecision, WindowType
from trip_dates.models.trip import Trip
from trip_dates.models.window_reaction import WindowReaction
from trip_dates.models.window_support import WindowSupport
from trip_dates.services.date_normalization_service import normalize_window_text
from trip_dates.services.errors import (
    DUPLICATE_SUPPORT,
    USER_WINDOW_CAP_REACHED,
    SchedulingForbiddenError,
    SchedulingNotFoundError,
    SchedulingStateError,
    SchedulingValidationError,
)
from trip_dates.services.overlap_service import SimilarWindow, find_most_similar_window
from trip_dates.services.phase_service import (
    ensure_collecting,
    ensure_member,
    ensure_not_canceled,
    get_trip_or_404,
    guard_schedule_version,
)
from trip_dates.services.roster_service import get_roster

log = structlog.get_logger(__name__)


@dataclass
class WindowCreationResult:
    window: DateWindow
    similar: Optional[SimilarWindow] = None

    @property
    def requires_acknowledgement(self) -> bool:
        return self.similar is not None


def count_user_windows(db: Session, trip_id: int, user_id: str) -> int:
    return (
        db.query(DateWindow)
        .filter(DateWindow.trip_id == trip_id, DateWindow.proposed_by == user_id)
        .count()
    )


def _check_quota(db: Session, trip_id: int, user_id: str, max_windows: int) -> None:
    user_window_count = count_user_windows(db, trip_id, user_id)
    if user_window_count >= max_windows:
        raise SchedulingStateError(
            f"You can suggest at most {max_windows} date options. "
            "Delete one of yours to add another.",
            code=USER_WINDOW_CAP_REACHED,
            data={"userWindowCount": user_window_count, "maxWindows": max_windows},
        )


def check_bounds(trip: Trip, start: date, end: date) -> None:
    if trip.start_bound is None or trip.end_bound is None:
        return
    if start < trip.start_bound:
        raise SchedulingValidationError(
            f"Start date {start.isoformat()} is before the trip's earliest date "
            f"{trip.start_bound.isoformat()}"
        )
    if end > trip.end_bound:
        raise SchedulingValidationError(
            f"End date {end.isoformat()} is after the trip's latest date "
            f"{trip.end_bound.isoformat()}"
        )


def _get_window_or_404(db: Session, trip_id: int, window_id: int) -> DateWindow:
    window = db.get(DateWindow, window_id)
    if not window or window.trip_id != trip_id:
        raise SchedulingNotFoundError("Date window not found")
    return window


def create_window(
    db: Session,
    *,
    trip_id: int,
    user_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    text: Optional[str] = None,
    window_type: str = WindowType.AVAILABLE.value,
    acknowledge_overlap: bool = False,
    force_accept: bool = False,
    settings: Optional[Settings] = None,
    today: Optional[date] = None,
) -> WindowCreationResult:
    """
    Add a candidate window (or a blocker) for a trip.

    Flow:
    - only while COLLECTING, only for active travelers
    - explicit range (start <= end) or free text (normalized, or stored
      as `unstructured` when it cannot be understood)
    - per-user quota
    - overlap nudge against existing windows (never blocks)
    - window + implicit support for its creator in one transaction
    """
    settings = settings or get_settings()

    trip = get_trip_or_404(db, trip_id)
    ensure_not_canceled(trip)
    roster = get_roster(db, trip)
    ensure_member(roster, user_id)
    ensure_collecting(trip, "add date options")
    expected_version = trip.schedule_version

    if window_type not in (WindowType.AVAILABLE.value, WindowType.BLOCKER.value):
        raise SchedulingValidationError(f"Unknown window type: {window_type}")

    has_range = start_date is not None or end_date is not None
    if has_range and text:
        raise SchedulingValidationError("Provide either startDate/endDate or text, not both")
    if not has_range and text is None:
        raise SchedulingValidationError("startDate and endDate, or text, are required")

    window = DateWindow(
        trip_id=trip.id,
        proposed_by=user_id,
        window_type=window_type,
    )

    if has_range:
        if start_date is None or end_date is None:
            raise SchedulingValidationError("Both startDate and endDate are required")
        if start_date > end_date:
            raise SchedulingValidationError("startDate must be on or before endDate")
        window.start_date = start_date
        window.end_date = end_date
        window.normalized_start = start_date
        window.normalized_end = end_date
        window.precision = WindowPrecision.EXACT.value
    else:
        normalized = normalize_window_text(
            text,
            max_window_days=settings.MAX_WINDOW_DAYS,
            start_bound=trip.start_bound,
            today=today,
        )
        window.source_text = text.strip()
        if normalized is None:
            window.precision = WindowPrecision.UNSTRUCTURED.value
        else:
            window.normalized_start = normalized.start
            window.normalized_end = normalized.end
            window.precision = normalized.precision

    if not window.is_unstructured:
        check_bounds(trip, window.range_start, window.range_end)

    _check_quota(db, trip.id, user_id, settings.MAX_WINDOWS_PER_USER)

    similar: Optional[SimilarWindow] = None
    if not window.is_unstructured and not window.is_blocker:
        existing = db.query(DateWindow).filter(DateWindow.trip_id == trip.id).all()
        similar = find_most_similar_window(
            window.range_start,
            window.range_end,
            existing,
            settings.SIMILARITY_THRESHOLD,
        )
        if similar is not None and (acknowledge_overlap or force_accept):
            log.info(
                "overlap_nudge_acknowledged",
                trip_id=trip.id,
                user_id=user_id,
                similar_window_id=similar.window_id,
                similar_score=similar.score,
                force_accept=force_accept,
            )
            similar = None

    guard_schedule_version(db, trip, expected_version)

    db.add(window)
    db.flush()

    # The version guard does not serialize creates by the same user, so the
    # cap is re-checked after our own insert, inside the write transaction.
    user_window_count = count_user_windows(db, trip.id, user_id)
    if user_window_count > settings.MAX_WINDOWS_PER_USER:
        db.rollback()
        log.warning("window_quota_race", trip_id=trip_id, user_id=user_id)
        raise SchedulingStateError(
            f"You can suggest at most {settings.MAX_WINDOWS_PER_USER} date options. "
            "Delete one of yours to add another.",
            code=USER_WINDOW_CAP_REACHED,
            data={
                "userWindowCount": user_window_count - 1,
                "maxWindows": settings.MAX_WINDOWS_PER_USER,
            },
        )

    db.add(WindowSupport(window_id=window.id, trip_id=trip.id, user_id=user_id))
    db.commit()
    db.refresh(window)

    log.info(
        "window_created",
        trip_id=trip.id,
        window_id=window.id,
        user_id=user_id,
        precision=window.precision,
        window_type=window.window_type,
        similar_window_id=similar.window_id if similar else None,
    )

    return WindowCreationResult(window=window, similar=similar)


def delete_window(db: Session, *, trip_id: int, window_id: int, user_id: str) -> None:
    """
    Creator-only, COLLECTING-only. Cascades the window's supports.
    """
    trip = get_trip_or_404(db, trip_id)
    window = _get_window_or_404(db, trip.id, window_id)
    ensure_not_canceled(trip)

    if window.proposed_by != user_id:
        raise SchedulingForbiddenError("Only the person who suggested these dates can delete them")

    ensure_collecting(trip, "delete date options")
    guard_schedule_version(db, trip, trip.schedule_version)

    db.query(WindowSupport).filter(WindowSupport.window_id == window.id).delete(
        synchronize_session=False
    )
    db.query(WindowReaction).filter(WindowReaction.window_id == window.id).delete(
        synchronize_session=False
    )
    db.delete(window)
    db.commit()

    log.info("window_deleted", trip_id=trip.id, window_id=window_id, user_id=user_id)


def add_support(db: Session, *, trip_id: int, window_id: int, user_id: str) -> WindowSupport:
    """
    Record "these dates work for me". A second add for the same
    (window, user) is an error, not a no-op, so counts stay auditable.
    """
    trip = get_trip_or_404(db, trip_id)
    window = _get_window_or_404(db, trip.id, window_id)
    ensure_not_canceled(trip)
    roster = get_roster(db, trip)
    ensure_member(roster, user_id)
    ensure_collecting(trip, "change support")

    existing = (
        db.query(WindowSupport)
        .filter(WindowSupport.window_id == window.id, WindowSupport.user_id == user_id)
        .first()
    )
    if existing or window.proposed_by == user_id:
        raise SchedulingStateError(
            "You already support these dates",
            code=DUPLICATE_SUPPORT,
        )

    guard_schedule_version(db, trip, trip.schedule_version)

    support = WindowSupport(window_id=window.id, trip_id=trip.id, user_id=user_id)
    db.add(support)
    try:
        db.commit()
    except IntegrityError as e:
        # Lost a race against our own concurrent request
        db.rollback()
        raise SchedulingStateError(
            "You already support these dates",
            code=DUPLICATE_SUPPORT,
        ) from e
    db.refresh(support)

    log.info("support_added", trip_id=trip.id, window_id=window.id, user_id=user_id)
    return support


def remove_support(db: Session, *, trip_id: int, window_id: int, user_id: str) -> None:
    trip = get_trip_or_404(db, trip_id)
    window = _get_window_or_404(db, trip.id, window_id)
    ensure_not_canceled(trip)
    roster = get_roster(db, trip)
    ensure_member(roster, user_id)
    ensure_collecting(trip, "change support")

    if window.proposed_by == user_id:
        raise SchedulingValidationError(
            "You suggested these dates; delete the option instead of removing support"
        )

    guard_schedule_version(db, trip, trip.schedule_version)

    removed = (
        db.query(WindowSupport)
        .filter(WindowSupport.window_id == window.id, WindowSupport.user_id == user_id)
        .delete(synchronize_session=False)
    )
    if not removed:
        db.rollback()
        raise SchedulingValidationError("You have not supported these dates")

    db.commit()
    log.info("support_removed", trip_id=trip.id, window_id=window.id, user_id=user_id)
