# trip_dates/services/reaction_service.py
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from trip_dates.models.trip import Trip, SchedulingPhase
from trip_dates.models.window_reaction import ReactionType, WindowReaction
from trip_dates.services.errors import (
    DATES_LOCKED,
    NOT_PROPOSED,
    SchedulingStateError,
    SchedulingValidationError,
)
from trip_dates.services.phase_service import (
    ensure_member,
    ensure_not_canceled,
    get_phase,
    get_proposed_window_ids,
    get_trip_or_404,
    guard_schedule_version,
)
from trip_dates.services.roster_service import Roster, get_roster

log = structlog.get_logger(__name__)


@dataclass
class ApprovalSummary:
    window_id: int
    approvals: int
    caveats: int
    cants: int
    total_reactions: int
    required_approvals: int
    member_count: int
    ready_to_lock: bool
    user_reaction: Optional[str] = None
    reactions: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "windowId": self.window_id,
            "approvals": self.approvals,
            "caveats": self.caveats,
            "cants": self.cants,
            "totalReactions": self.total_reactions,
            "requiredApprovals": self.required_approvals,
            "memberCount": self.member_count,
            "readyToLock": self.ready_to_lock,
            "userReaction": self.user_reaction,
            "reactions": self.reactions,
        }


def required_approvals(member_count: int) -> int:
    """ceil(members / 2), never below one approval."""
    return math.ceil(max(member_count, 1) / 2)


def build_approval_summary(
    window_id: int,
    reactions: Iterable[WindowReaction],
    roster: Roster,
    user_id: Optional[str] = None,
) -> ApprovalSummary:
    """
    Bucket the current reactions on one proposed window.

    Only active travelers count. There is at most one reaction per user
    per window (upsert), so totals are just row counts.
    """
    active = set(roster.active_user_ids)
    buckets = {rt.value: 0 for rt in ReactionType}
    rows: List[Dict[str, Any]] = []
    user_reaction: Optional[str] = None

    for r in sorted(reactions, key=lambda r: (r.created_at, r.id)):
        if r.window_id != window_id or r.user_id not in active:
            continue
        buckets[r.reaction_type] = buckets.get(r.reaction_type, 0) + 1
        rows.append(
            {
                "userId": r.user_id,
                "reactionType": r.reaction_type,
                "note": r.note,
                "createdAt": r.created_at.isoformat() if r.created_at else None,
                "updatedAt": r.updated_at.isoformat() if r.updated_at else None,
            }
        )
        if user_id is not None and r.user_id == user_id:
            user_reaction = r.reaction_type

    member_count = roster.total_active_travelers
    needed = required_approvals(member_count)
    approvals = buckets[ReactionType.WORKS.value]

    return ApprovalSummary(
        window_id=window_id,
        approvals=approvals,
        caveats=buckets[ReactionType.CAVEAT.value],
        cants=buckets[ReactionType.CANT.value],
        total_reactions=len(rows),
        required_approvals=needed,
        member_count=member_count,
        ready_to_lock=approvals >= needed,
        user_reaction=user_reaction,
        reactions=rows,
    )


def get_approval_summaries(
    db: Session,
    trip: Trip,
    roster: Roster,
    user_id: Optional[str] = None,
) -> Dict[int, ApprovalSummary]:
    """
    One independent summary per proposed window, keyed by window id.
    Empty while nothing is proposed.
    """
    window_ids = get_proposed_window_ids(trip)
    if not window_ids:
        return {}

    reactions = (
        db.query(WindowReaction)
        .filter(WindowReaction.window_id.in_(window_ids))
        .all()
    )
    return {
        wid: build_approval_summary(wid, reactions, roster, user_id)
        for wid in window_ids
    }


def _upsert_reaction(
    db: Session,
    *,
    trip: Trip,
    window_id: int,
    user_id: str,
    reaction_type: str,
    note: Optional[str],
) -> WindowReaction:
    existing = (
        db.query(WindowReaction)
        .filter(WindowReaction.window_id == window_id, WindowReaction.user_id == user_id)
        .first()
    )
    if existing:
        existing.reaction_type = reaction_type
        existing.note = note
        existing.updated_at = datetime.utcnow()
        return existing

    reaction = WindowReaction(
        window_id=window_id,
        trip_id=trip.id,
        user_id=user_id,
        reaction_type=reaction_type,
        note=note,
    )
    db.add(reaction)
    return reaction


def react(
    db: Session,
    *,
    trip_id: int,
    window_id: Optional[int],
    user_id: str,
    reaction_type: str,
    note: Optional[str] = None,
) -> Dict[int, ApprovalSummary]:
    """
    Upsert the caller's WORKS / CAVEAT / CANT on one proposed window.

    `window_id=None` targets the first proposed window. Returns the
    refreshed summaries for every proposed window.
    """
    trip = get_trip_or_404(db, trip_id)
    ensure_not_canceled(trip)
    roster = get_roster(db, trip)
    ensure_member(roster, user_id)

    valid_types = {rt.value for rt in ReactionType}
    if reaction_type not in valid_types:
        raise SchedulingValidationError(
            f"reactionType must be one of {', '.join(sorted(valid_types))}"
        )

    phase = get_phase(trip)
    if phase == SchedulingPhase.LOCKED:
        raise SchedulingStateError("Dates are already locked", code=DATES_LOCKED)
    if phase != SchedulingPhase.PROPOSED:
        raise SchedulingStateError("No dates are proposed", code=NOT_PROPOSED)

    proposed_ids = get_proposed_window_ids(trip)
    if window_id is None:
        window_id = proposed_ids[0]
    if window_id not in proposed_ids:
        raise SchedulingValidationError("That window is not part of the current proposal")

    expected_version = trip.schedule_version

    # One retry: a concurrent first reaction from the same user may win the
    # unique (window_id, user_id) insert; the second pass turns into an update.
    for attempt in range(2):
        guard_schedule_version(db, trip, expected_version)
        _upsert_reaction(
            db,
            trip=trip,
            window_id=window_id,
            user_id=user_id,
            reaction_type=reaction_type,
            note=note,
        )
        try:
            db.commit()
            break
        except IntegrityError:
            db.rollback()
            if attempt == 1:
                raise
            log.info("reaction_upsert_retry", trip_id=trip_id, window_id=window_id, user_id=user_id)

    log.info(
        "reaction_recorded",
        trip_id=trip_id,
        window_id=window_id,
        user_id=user_id,
        reaction_type=reaction_type,
    )

    db.refresh(trip)
    return get_approval_summaries(db, trip, roster, user_id)
