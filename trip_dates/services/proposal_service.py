# trip_dates/services/proposal_service.py
from datetime import date, datetime
from typing import List, Optional, Sequence, Tuple

import structlog
from sqlalchemy.orm import Session

from trip_dates.config import Settings, get_settings
from trip_dates.models.date_window import DateWindow, WindowPrecision
from trip_dates.models.trip import Trip, TripStatus, SchedulingPhase
from trip_dates.models.window_reaction import WindowReaction
from trip_dates.services.errors import (
    DATES_LOCKED,
    INSUFFICIENT_APPROVALS,
    NOT_PROPOSED,
    PROPOSAL_ACTIVE,
    REQUIRES_CONCRETE_DATES,
    THRESHOLD_NOT_MET,
    TRIP_CANCELED,
    SchedulingNotFoundError,
    SchedulingStateError,
    SchedulingValidationError,
)
from trip_dates.services.notification_service import NotificationSink, TripEventType
from trip_dates.services.phase_service import (
    ensure_leader,
    ensure_not_canceled,
    get_phase,
    get_proposed_window_ids,
    get_trip_or_404,
    transition,
)
from trip_dates.services.reaction_service import get_approval_summaries
from trip_dates.services.readiness_service import (
    load_windows_and_supports,
    supporters_by_window,
    threshold_needed,
)
from trip_dates.services.roster_service import get_roster
from trip_dates.services.window_service import check_bounds

log = structlog.get_logger(__name__)


def _clear_reactions(db: Session, window_ids: Sequence[int]) -> int:
    if not window_ids:
        return 0
    return (
        db.query(WindowReaction)
        .filter(WindowReaction.window_id.in_(list(window_ids)))
        .delete(synchronize_session=False)
    )


def _load_proposed_windows(db: Session, trip: Trip, window_ids: Sequence[int]) -> List[DateWindow]:
    rows = (
        db.query(DateWindow)
        .filter(DateWindow.trip_id == trip.id, DateWindow.id.in_(list(window_ids)))
        .all()
    )
    by_id = {w.id: w for w in rows}
    missing = [wid for wid in window_ids if wid not in by_id]
    if missing:
        raise SchedulingNotFoundError(
            "Date window not found",
            data={"missingWindowIds": missing},
        )
    return [by_id[wid] for wid in window_ids]


def propose(
    db: Session,
    *,
    trip_id: int,
    user_id: str,
    window_ids: Sequence[int],
    leader_override: bool = False,
    concrete_dates: Optional[Tuple[date, date]] = None,
    notifier: Optional[NotificationSink] = None,
    settings: Optional[Settings] = None,
) -> Trip:
    """
    Leader proposes one window or a shortlist (1-3) of windows.

    Without `leader_override` the first window must already have majority
    support. An unstructured window needs `concrete_dates` from the leader.
    On success window creation and support changes are frozen until the
    proposal is withdrawn.
    """
    settings = settings or get_settings()
    notifier = notifier or NotificationSink()

    trip = get_trip_or_404(db, trip_id)
    roster = get_roster(db, trip)
    ensure_leader(roster, user_id, "propose dates")
    ensure_not_canceled(trip)

    phase = get_phase(trip)
    if phase == SchedulingPhase.LOCKED:
        raise SchedulingStateError("Dates are already locked", code=DATES_LOCKED)
    if phase == SchedulingPhase.PROPOSED:
        raise SchedulingStateError(
            "A date proposal is already active; withdraw it first",
            code=PROPOSAL_ACTIVE,
        )
    expected_version = trip.schedule_version

    window_ids = [int(wid) for wid in window_ids]
    max_windows = settings.MAX_PROPOSED_WINDOWS
    if not 1 <= len(window_ids) <= max_windows:
        raise SchedulingValidationError(
            f"Propose 1-{max_windows} date windows",
            data={"maxProposedWindows": max_windows},
        )
    if len(set(window_ids)) != len(window_ids):
        raise SchedulingValidationError("The same window was proposed more than once")

    windows = _load_proposed_windows(db, trip, window_ids)

    blockers = [w.id for w in windows if w.is_blocker]
    if blockers:
        raise SchedulingValidationError(
            "Cannot propose a blocker window; blockers mark dates that don't work",
            data={"blockerWindowIds": blockers},
        )

    unstructured = [w for w in windows if w.is_unstructured]
    if unstructured:
        if concrete_dates is None:
            raise SchedulingStateError(
                "Pick concrete start and end dates for the free-text option before proposing it",
                code=REQUIRES_CONCRETE_DATES,
                data={"windowIds": [w.id for w in unstructured]},
            )
        if len(unstructured) > 1:
            raise SchedulingValidationError(
                "Only one free-text option can be given concrete dates per proposal"
            )
        start, end = concrete_dates
        if start > end:
            raise SchedulingValidationError("startDate must be on or before endDate")
        check_bounds(trip, start, end)

    if not leader_override:
        all_windows, supports = load_windows_and_supports(db, trip.id)
        supporters = supporters_by_window(all_windows, supports)
        first_count = len(supporters.get(windows[0].id, set()))
        needed = threshold_needed(roster.total_active_travelers)
        if first_count < needed:
            raise SchedulingStateError(
                f"Not enough travelers support these dates yet ({first_count} of {needed} needed). "
                "Use leader override to propose anyway.",
                code=THRESHOLD_NOT_MET,
                data={"supportCount": first_count, "thresholdNeeded": needed},
            )

    if unstructured:
        target = unstructured[0]
        target.normalized_start, target.normalized_end = concrete_dates
        target.precision = WindowPrecision.EXACT.value

    _clear_reactions(db, window_ids)
    now = datetime.utcnow()
    transition(
        db,
        trip,
        expected_version,
        {
            Trip.proposed_window_ids: window_ids,
            Trip.proposed_window_id: window_ids[0],
            Trip.proposed_at: now,
        },
    )
    db.commit()
    db.refresh(trip)

    log.info(
        "dates_proposed",
        trip_id=trip.id,
        window_ids=window_ids,
        leader_override=leader_override,
    )
    notifier.emit(
        trip_id=trip.id,
        event_type=TripEventType.DATES_PROPOSED,
        actor_user_id=user_id,
        payload={"windowIds": window_ids, "leaderOverride": leader_override},
    )
    return trip


def withdraw(
    db: Session,
    *,
    trip_id: int,
    user_id: str,
    notifier: Optional[NotificationSink] = None,
) -> Trip:
    """
    Leader pulls the proposal back. Reactions on the proposed windows are
    deleted and the trip returns to COLLECTING.
    """
    notifier = notifier or NotificationSink()

    trip = get_trip_or_404(db, trip_id)
    roster = get_roster(db, trip)
    ensure_leader(roster, user_id, "withdraw a proposal")
    ensure_not_canceled(trip)

    phase = get_phase(trip)
    if phase != SchedulingPhase.PROPOSED:
        raise SchedulingStateError(
            "No date proposal to withdraw",
            code=DATES_LOCKED if phase == SchedulingPhase.LOCKED else NOT_PROPOSED,
        )

    window_ids = get_proposed_window_ids(trip)
    cleared = _clear_reactions(db, window_ids)
    transition(
        db,
        trip,
        trip.schedule_version,
        {
            Trip.proposed_window_ids: None,
            Trip.proposed_window_id: None,
            Trip.proposed_at: None,
        },
    )
    db.commit()
    db.refresh(trip)

    log.info("proposal_withdrawn", trip_id=trip.id, window_ids=window_ids, reactions_cleared=cleared)
    notifier.emit(
        trip_id=trip.id,
        event_type=TripEventType.PROPOSAL_WITHDRAWN,
        actor_user_id=user_id,
        payload={"windowIds": window_ids},
    )
    return trip


def lock(
    db: Session,
    *,
    trip_id: int,
    user_id: str,
    window_id: Optional[int] = None,
    leader_override: bool = False,
    notifier: Optional[NotificationSink] = None,
) -> Trip:
    """
    Fix the final trip dates from one proposed window (first one by default).

    Without `leader_override` that window needs a majority of WORKS
    reactions. LOCKED is terminal.
    """
    notifier = notifier or NotificationSink()

    trip = get_trip_or_404(db, trip_id)
    roster = get_roster(db, trip)
    ensure_leader(roster, user_id, "lock dates")
    ensure_not_canceled(trip)

    phase = get_phase(trip)
    if phase == SchedulingPhase.LOCKED:
        raise SchedulingStateError("No dates are proposed; dates are already locked", code=DATES_LOCKED)
    if phase != SchedulingPhase.PROPOSED:
        raise SchedulingStateError("No dates are proposed", code=NOT_PROPOSED)

    proposed_ids = get_proposed_window_ids(trip)
    target_id = int(window_id) if window_id is not None else proposed_ids[0]
    if target_id not in proposed_ids:
        raise SchedulingValidationError(
            "That window is not part of the current proposal",
            data={"proposedWindowIds": proposed_ids},
        )

    window = db.get(DateWindow, target_id)
    if not window or window.trip_id != trip.id:
        raise SchedulingNotFoundError("Date window not found")
    if window.is_unstructured:
        raise SchedulingStateError(
            "This option has no concrete dates",
            code=REQUIRES_CONCRETE_DATES,
            data={"windowIds": [window.id]},
        )

    if not leader_override:
        summary = get_approval_summaries(db, trip, roster)[target_id]
        if not summary.ready_to_lock:
            raise SchedulingStateError(
                f"Need {summary.required_approvals} approvals to lock, have {summary.approvals}",
                code=INSUFFICIENT_APPROVALS,
                data={
                    "approvals": summary.approvals,
                    "requiredApprovals": summary.required_approvals,
                },
            )

    now = datetime.utcnow()
    transition(
        db,
        trip,
        trip.schedule_version,
        {
            Trip.dates_locked: True,
            Trip.locked_start_date: window.range_start,
            Trip.locked_end_date: window.range_end,
            Trip.locked_from_window_id: window.id,
            Trip.locked_at: now,
            Trip.proposed_window_ids: None,
            Trip.proposed_window_id: None,
            Trip.proposed_at: None,
        },
    )
    db.commit()
    db.refresh(trip)

    log.info(
        "dates_locked",
        trip_id=trip.id,
        window_id=window.id,
        start=trip.locked_start_date.isoformat(),
        end=trip.locked_end_date.isoformat(),
        leader_override=leader_override,
    )
    notifier.emit(
        trip_id=trip.id,
        event_type=TripEventType.DATES_LOCKED,
        actor_user_id=user_id,
        payload={
            "windowId": window.id,
            "startDate": trip.locked_start_date.isoformat(),
            "endDate": trip.locked_end_date.isoformat(),
        },
    )
    return trip


def cancel(
    db: Session,
    *,
    trip_id: int,
    user_id: str,
    notifier: Optional[NotificationSink] = None,
) -> Trip:
    """
    Leader cancels the trip; every later scheduling mutation is rejected.
    """
    notifier = notifier or NotificationSink()

    trip = get_trip_or_404(db, trip_id)
    roster = get_roster(db, trip)
    ensure_leader(roster, user_id, "cancel the trip")
    if trip.status == TripStatus.CANCELED.value:
        raise SchedulingStateError("This trip is already canceled", code=TRIP_CANCELED)

    transition(db, trip, trip.schedule_version, {Trip.status: TripStatus.CANCELED.value})
    db.commit()
    db.refresh(trip)

    log.info("trip_canceled", trip_id=trip.id)
    notifier.emit(
        trip_id=trip.id,
        event_type=TripEventType.TRIP_CANCELED,
        actor_user_id=user_id,
    )
    return trip
