# trip_dates/models/trip_participant.py
from datetime import datetime
from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from trip_dates.models.base import Base


class ParticipantStatus(str, Enum):
    ACTIVE = "active"
    LEFT = "left"


class TripParticipant(Base):
    """
    One row per traveler on a trip. The scheduling engine only reads
    this table (roster); membership is managed elsewhere.
    """

    __tablename__ = "trip_participants"
    __table_args__ = (
        UniqueConstraint("trip_id", "user_id", name="uq_trip_participant"),
    )

    id = Column(Integer, primary_key=True, index=True)

    trip_id = Column(
        Integer,
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user_id = Column(String, nullable=False, index=True)

    status = Column(String(16), nullable=False, default=ParticipantStatus.ACTIVE.value)

    joined_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    trip = relationship("Trip", backref="participants")
