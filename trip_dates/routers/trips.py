# trip_dates/routers/trips.py
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from trip_dates.db.session import get_db
from trip_dates.models.trip import Trip
from trip_dates.models.trip_participant import TripParticipant
from trip_dates.schemas.scheduling import CreateTripPayload
from trip_dates.services.schedule_service import trip_to_dict

router = APIRouter(prefix="/trips", tags=["trips"])


def _participants(trip: Trip):
    return [
        {"userId": p.user_id, "status": p.status}
        for p in sorted(trip.participants, key=lambda p: p.id)
    ]


@router.post("")
def create_trip(
    payload: CreateTripPayload,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """
    Create a trip and seed its roster.

    Membership is owned elsewhere; this endpoint exists so the scheduling
    flow can be driven end to end. The leader is always on the roster.
    """
    trip = Trip(
        name=payload.name,
        leader_user_id=payload.leader_user_id,
        start_bound=payload.start_bound,
        end_bound=payload.end_bound,
    )
    db.add(trip)
    db.flush()

    user_ids = [payload.leader_user_id]
    for uid in payload.participant_ids:
        if uid and uid not in user_ids:
            user_ids.append(uid)
    for uid in user_ids:
        db.add(TripParticipant(trip_id=trip.id, user_id=uid))

    db.commit()
    db.refresh(trip)

    data = trip_to_dict(trip)
    data["participants"] = _participants(trip)
    return data


@router.get("/{trip_id}")
def get_trip(
    trip_id: int,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    trip = db.get(Trip, trip_id)
    if not trip:
        raise HTTPException(status_code=404, detail="Trip not found")

    data = trip_to_dict(trip)
    data["participants"] = _participants(trip)
    return data
