# trip_dates/models/trip_event.py
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, JSON

from trip_dates.models.base import Base


class TripEvent(Base):
    """
    Outbox of scheduling events (lock / withdraw / cancel ...).
    The chat subsystem picks these up and posts system messages.
    """

    __tablename__ = "trip_events"

    id = Column(Integer, primary_key=True, index=True)

    trip_id = Column(
        Integer,
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    event_type = Column(String(64), nullable=False)
    actor_user_id = Column(String, nullable=True)
    payload = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
