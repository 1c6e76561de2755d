# trip_dates/services/roster_service.py
from dataclasses import dataclass, field
from typing import List

from sqlalchemy.orm import Session

from trip_dates.models.trip import Trip
from trip_dates.models.trip_participant import TripParticipant, ParticipantStatus


@dataclass
class Roster:
    """
    What the scheduling engine needs to know about trip membership.
    """

    total_active_travelers: int
    leader_user_id: str
    active_user_ids: List[str] = field(default_factory=list)

    def is_leader(self, user_id: str) -> bool:
        return bool(user_id) and user_id == self.leader_user_id

    def is_active(self, user_id: str) -> bool:
        return user_id in self.active_user_ids


def get_roster(db: Session, trip: Trip) -> Roster:
    """
    Read the active participants of a trip. Membership itself is owned by
    another subsystem; this is a read-only view.
    """
    rows = (
        db.query(TripParticipant)
        .filter(
            TripParticipant.trip_id == trip.id,
            TripParticipant.status == ParticipantStatus.ACTIVE.value,
        )
        .order_by(TripParticipant.id.asc())
        .all()
    )
    user_ids = [p.user_id for p in rows]

    return Roster(
        total_active_travelers=len(user_ids),
        leader_user_id=trip.leader_user_id,
        active_user_ids=user_ids,
    )
