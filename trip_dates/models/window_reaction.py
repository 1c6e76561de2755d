# trip_dates/models/window_reaction.py
from datetime import datetime
import enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from trip_dates.models.base import Base


class ReactionType(str, enum.Enum):
    WORKS = "WORKS"
    CAVEAT = "CAVEAT"
    CANT = "CANT"


class WindowReaction(Base):
    """
    Current reaction of one participant to one proposed window.
    Upserted, never appended: a new reaction replaces the old one.
    """

    __tablename__ = "window_reactions"
    __table_args__ = (
        UniqueConstraint("window_id", "user_id", name="uq_window_reaction"),
    )

    id = Column(Integer, primary_key=True, index=True)

    window_id = Column(
        Integer,
        ForeignKey("date_windows.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    trip_id = Column(
        Integer,
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user_id = Column(String, nullable=False, index=True)

    reaction_type = Column(String(16), nullable=False)
    note = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )
