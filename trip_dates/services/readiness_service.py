# trip_dates/services/readiness_service.py
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy.orm import Session

from trip_dates.models.date_window import DateWindow
from trip_dates.models.trip import Trip
from trip_dates.models.window_support import WindowSupport
from trip_dates.services.roster_service import Roster


@dataclass
class ReadinessStats:
    total_travelers: int
    responder_count: int
    leader_count: int
    threshold_needed: int
    window_count: int


@dataclass
class RunnerUp:
    window: DateWindow
    count: int


@dataclass
class ProposalStatus:
    proposal_ready: bool
    reason: str
    leading_window: Optional[DateWindow]
    stats: ReadinessStats
    leader_user_ids: List[str] = field(default_factory=list)
    runner_up: Optional[RunnerUp] = None


def threshold_needed(total_active_travelers: int) -> int:
    """Simple majority of the active roster."""
    return math.ceil(total_active_travelers / 2)


def supporters_by_window(
    windows: Iterable[DateWindow],
    supports: Iterable[WindowSupport],
) -> Dict[int, Set[str]]:
    """
    window_id -> set of supporting user ids.

    The creator always counts as a supporter, whether or not their
    implicit support row is present.
    """
    result: Dict[int, Set[str]] = {w.id: {w.proposed_by} for w in windows}
    for s in supports:
        if s.window_id in result:
            result[s.window_id].add(s.user_id)
    return result


def compute_proposal_status(
    windows: List[DateWindow],
    supports: List[WindowSupport],
    total_active_travelers: int,
) -> ProposalStatus:
    """
    Pure readiness computation:

    - supportCount(w) = |supporters(w)|, blockers excluded
    - leading window = max supportCount, tie -> earliest created_at
    - thresholdNeeded = ceil(totalActiveTravelers / 2)
    - proposalReady = supportCount(leading) >= thresholdNeeded
    - responderCount = distinct users backing any window (blockers included)
    """
    supporters = supporters_by_window(windows, supports)

    responders: Set[str] = set()
    for user_ids in supporters.values():
        responders.update(user_ids)

    candidates = [w for w in windows if not w.is_blocker]
    needed = threshold_needed(total_active_travelers)

    if not candidates:
        return ProposalStatus(
            proposal_ready=False,
            reason="no_windows",
            leading_window=None,
            stats=ReadinessStats(
                total_travelers=total_active_travelers,
                responder_count=len(responders),
                leader_count=0,
                threshold_needed=needed,
                window_count=0,
            ),
        )

    ranked = sorted(
        candidates,
        key=lambda w: (-len(supporters[w.id]), w.created_at, w.id),
    )
    leader = ranked[0]
    leader_count = len(supporters[leader.id])
    ready = leader_count >= needed

    runner_up = None
    if len(ranked) > 1:
        runner_up = RunnerUp(window=ranked[1], count=len(supporters[ranked[1].id]))

    return ProposalStatus(
        proposal_ready=ready,
        reason="threshold_met" if ready else "threshold_not_met",
        leading_window=leader,
        stats=ReadinessStats(
            total_travelers=total_active_travelers,
            responder_count=len(responders),
            leader_count=leader_count,
            threshold_needed=needed,
            window_count=len(candidates),
        ),
        leader_user_ids=sorted(supporters[leader.id]),
        runner_up=runner_up,
    )


def load_windows_and_supports(db: Session, trip_id: int):
    windows = (
        db.query(DateWindow)
        .filter(DateWindow.trip_id == trip_id)
        .order_by(DateWindow.created_at.asc(), DateWindow.id.asc())
        .all()
    )
    supports = db.query(WindowSupport).filter(WindowSupport.trip_id == trip_id).all()
    return windows, supports


def get_proposal_status(db: Session, trip: Trip, roster: Roster) -> ProposalStatus:
    windows, supports = load_windows_and_supports(db, trip.id)
    return compute_proposal_status(windows, supports, roster.total_active_travelers)
