# trip_dates/models/trip.py
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String, JSON

from trip_dates.models.base import Base


class TripStatus(str, Enum):
    ACTIVE = "active"
    CANCELED = "canceled"


class SchedulingPhase(str, Enum):
    COLLECTING = "COLLECTING"
    PROPOSED = "PROPOSED"
    LOCKED = "LOCKED"


class Trip(Base):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True)

    name = Column(String(255), nullable=False)

    # The single participant allowed to propose / withdraw / lock
    leader_user_id = Column(String, nullable=False, index=True)

    # Optional outer bounds for candidate windows
    start_bound = Column(Date, nullable=True)
    end_bound = Column(Date, nullable=True)

    status = Column(String(32), nullable=False, default=TripStatus.ACTIVE.value)

    # Proposal state. Empty list / NULL while collecting.
    proposed_window_ids = Column(JSON, nullable=True)
    # First proposed id, kept for single-window consumers
    proposed_window_id = Column(Integer, nullable=True)
    proposed_at = Column(DateTime, nullable=True)

    # Lock state (terminal)
    dates_locked = Column(Boolean, nullable=False, default=False)
    locked_start_date = Column(Date, nullable=True)
    locked_end_date = Column(Date, nullable=True)
    locked_from_window_id = Column(Integer, nullable=True)
    locked_at = Column(DateTime, nullable=True)

    # Compare-and-set token, bumped on every phase transition
    schedule_version = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )
