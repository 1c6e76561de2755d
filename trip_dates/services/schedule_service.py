# trip_dates/services/schedule_service.py
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from trip_dates.config import Settings, get_settings
from trip_dates.models.date_window import DateWindow
from trip_dates.models.trip import Trip, TripStatus, SchedulingPhase
from trip_dates.services.phase_service import (
    ensure_member,
    get_phase,
    get_proposed_window_ids,
    get_trip_or_404,
)
from trip_dates.services.reaction_service import get_approval_summaries
from trip_dates.services.readiness_service import (
    ProposalStatus,
    compute_proposal_status,
    load_windows_and_supports,
    supporters_by_window,
)
from trip_dates.services.roster_service import get_roster


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def window_to_dict(window: DateWindow, supporter_ids: Iterable[str]) -> Dict[str, Any]:
    supporter_ids = sorted(supporter_ids)
    return {
        "id": window.id,
        "tripId": window.trip_id,
        "proposedBy": window.proposed_by,
        "startDate": _iso(window.start_date),
        "endDate": _iso(window.end_date),
        "sourceText": window.source_text,
        "normalizedStart": _iso(window.normalized_start),
        "normalizedEnd": _iso(window.normalized_end),
        "precision": window.precision,
        "windowType": window.window_type,
        "createdAt": _iso(window.created_at),
        "supportCount": len(supporter_ids),
        "supporterIds": supporter_ids,
    }


def proposal_status_to_dict(status: ProposalStatus) -> Dict[str, Any]:
    stats = status.stats
    return {
        "proposalReady": status.proposal_ready,
        "reason": status.reason,
        "leadingWindowId": status.leading_window.id if status.leading_window else None,
        "leaderUserIds": status.leader_user_ids,
        "runnerUp": (
            {"windowId": status.runner_up.window.id, "supportCount": status.runner_up.count}
            if status.runner_up
            else None
        ),
        "stats": {
            "totalTravelers": stats.total_travelers,
            "responderCount": stats.responder_count,
            "leaderCount": stats.leader_count,
            "thresholdNeeded": stats.threshold_needed,
            "windowCount": stats.window_count,
        },
    }


def trip_to_dict(trip: Trip) -> Dict[str, Any]:
    return {
        "id": trip.id,
        "name": trip.name,
        "leaderUserId": trip.leader_user_id,
        "status": trip.status,
        "startBound": _iso(trip.start_bound),
        "endBound": _iso(trip.end_bound),
        "phase": get_phase(trip).value,
        "proposedWindowIds": get_proposed_window_ids(trip),
        "proposedAt": _iso(trip.proposed_at),
        "datesLocked": bool(trip.dates_locked),
        "lockedStartDate": _iso(trip.locked_start_date),
        "lockedEndDate": _iso(trip.locked_end_date),
        "lockedFromWindowId": trip.locked_from_window_id,
        "lockedAt": _iso(trip.locked_at),
        "scheduleVersion": trip.schedule_version,
    }


def get_schedule(
    db: Session,
    *,
    trip_id: int,
    user_id: str,
    settings: Optional[Settings] = None,
) -> Dict[str, Any]:
    """
    Full scheduling view for one traveler. Readiness and approval counts
    are recomputed from rows on every call.
    """
    settings = settings or get_settings()

    trip = get_trip_or_404(db, trip_id)
    roster = get_roster(db, trip)
    ensure_member(roster, user_id)

    windows, supports = load_windows_and_supports(db, trip.id)
    supporters = supporters_by_window(windows, supports)
    status = compute_proposal_status(windows, supports, roster.total_active_travelers)

    phase = get_phase(trip)
    proposed_ids = get_proposed_window_ids(trip)
    summaries = get_approval_summaries(db, trip, roster, user_id)

    user_supported: List[int] = [w.id for w in windows if user_id in supporters[w.id]]
    user_window_count = sum(1 for w in windows if w.proposed_by == user_id)
    max_windows = settings.MAX_WINDOWS_PER_USER

    can_create = (
        phase == SchedulingPhase.COLLECTING
        and trip.status == TripStatus.ACTIVE.value
        and user_window_count < max_windows
    )

    first_summary = summaries.get(proposed_ids[0]) if proposed_ids else None

    return {
        "tripId": trip.id,
        "phase": phase.value,
        "tripStatus": trip.status,
        "windows": [window_to_dict(w, supporters[w.id]) for w in windows],
        "proposalStatus": proposal_status_to_dict(status),
        "userSupportedWindowIds": user_supported,
        "proposedWindowId": proposed_ids[0] if proposed_ids else None,
        "proposedWindowIds": proposed_ids,
        "isLeader": roster.is_leader(user_id),
        "userWindowCount": user_window_count,
        "maxWindows": max_windows,
        "canCreateWindow": can_create,
        "approvalSummary": first_summary.to_dict() if first_summary else None,
        "approvalSummaries": {str(wid): s.to_dict() for wid, s in summaries.items()},
        "lockedStartDate": _iso(trip.locked_start_date),
        "lockedEndDate": _iso(trip.locked_end_date),
        "lockedFromWindowId": trip.locked_from_window_id,
    }
