# trip_dates/services/phase_service.py
"""
Phase derivation and the guarded writes that keep it consistent.

The phase is never stored. It is derived from the trip row:

    LOCKED      dates_locked / locked_start_date set
    PROPOSED    proposed_window_ids (or legacy proposed_window_id) set
    COLLECTING  otherwise

Every transition bumps `trips.schedule_version` with a compare-and-set
UPDATE, so two concurrent leader actions cannot both succeed. Writes that
are only legal while COLLECTING (windows, supports) run a guard UPDATE on
the same version inside their transaction, so a proposal landing mid-request
makes them fail instead of slipping in.
"""
from datetime import datetime
from typing import Any, Dict, List

import structlog
from sqlalchemy.orm import Session

from trip_dates.models.trip import Trip, TripStatus, SchedulingPhase
from trip_dates.services.errors import (
    DATES_LOCKED,
    PROPOSAL_ACTIVE,
    TRIP_CANCELED,
    SchedulingForbiddenError,
    SchedulingNotFoundError,
    SchedulingStateError,
    StaleScheduleError,
)
from trip_dates.services.roster_service import Roster

log = structlog.get_logger(__name__)


def get_phase(trip: Trip) -> SchedulingPhase:
    if trip.dates_locked or trip.locked_start_date is not None:
        return SchedulingPhase.LOCKED
    if get_proposed_window_ids(trip):
        return SchedulingPhase.PROPOSED
    return SchedulingPhase.COLLECTING


def get_proposed_window_ids(trip: Trip) -> List[int]:
    """
    Proposed ids, falling back to the single-window field for rows written
    before shortlists existed.
    """
    if trip.proposed_window_ids:
        return [int(wid) for wid in trip.proposed_window_ids]
    if trip.proposed_window_id is not None:
        return [trip.proposed_window_id]
    return []


def get_trip_or_404(db: Session, trip_id: int) -> Trip:
    trip = db.get(Trip, trip_id)
    if not trip:
        raise SchedulingNotFoundError("Trip not found")
    return trip


def ensure_not_canceled(trip: Trip) -> None:
    if trip.status == TripStatus.CANCELED.value:
        raise SchedulingStateError(
            "This trip has been canceled and cannot be modified",
            code=TRIP_CANCELED,
        )


def ensure_leader(roster: Roster, user_id: str, action: str) -> None:
    if not roster.is_leader(user_id):
        raise SchedulingForbiddenError(f"Only the trip leader can {action}")


def ensure_member(roster: Roster, user_id: str) -> None:
    if not roster.is_active(user_id):
        raise SchedulingForbiddenError("You are not an active traveler on this trip")


def ensure_collecting(trip: Trip, action: str) -> None:
    """
    Raise PROPOSAL_ACTIVE / DATES_LOCKED unless the trip is collecting windows.
    """
    phase = get_phase(trip)
    if phase == SchedulingPhase.LOCKED:
        raise SchedulingStateError(
            f"Dates are locked; cannot {action}",
            code=DATES_LOCKED,
        )
    if phase == SchedulingPhase.PROPOSED:
        raise SchedulingStateError(
            f"Cannot {action} while a proposal is active",
            code=PROPOSAL_ACTIVE,
        )


def guard_schedule_version(db: Session, trip: Trip, expected_version: int) -> None:
    """
    Touch the trip row only if nobody transitioned it since we read it.

    Does not bump the version, so concurrent support toggles do not
    conflict with each other, only with phase transitions.
    """
    updated = (
        db.query(Trip)
        .filter(
            Trip.id == trip.id,
            Trip.schedule_version == expected_version,
            Trip.status == TripStatus.ACTIVE.value,
        )
        .update({Trip.updated_at: datetime.utcnow()}, synchronize_session=False)
    )
    if not updated:
        db.rollback()
        log.warning("stale_schedule_write", trip_id=trip.id, expected_version=expected_version)
        raise StaleScheduleError(
            "Trip schedule changed while saving; reload and try again",
            data={"expectedVersion": expected_version},
        )


def transition(
    db: Session,
    trip: Trip,
    expected_version: int,
    values: Dict[Any, Any],
) -> None:
    """
    Compare-and-set phase transition. Caller commits.

    `values` are column -> value pairs applied together with
    schedule_version = expected_version + 1.
    """
    payload = dict(values)
    payload[Trip.schedule_version] = expected_version + 1
    payload[Trip.updated_at] = datetime.utcnow()

    updated = (
        db.query(Trip)
        .filter(
            Trip.id == trip.id,
            Trip.schedule_version == expected_version,
        )
        .update(payload, synchronize_session=False)
    )
    if not updated:
        db.rollback()
        log.warning("stale_schedule_transition", trip_id=trip.id, expected_version=expected_version)
        raise StaleScheduleError(
            "Trip schedule changed while saving; reload and try again",
            data={"expectedVersion": expected_version},
        )
