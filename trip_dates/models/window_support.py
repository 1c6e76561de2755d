# trip_dates/models/window_support.py
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from trip_dates.models.base import Base


class WindowSupport(Base):
    """
    "This date works for me" – one row per (window, user).
    """

    __tablename__ = "window_supports"
    __table_args__ = (
        UniqueConstraint("window_id", "user_id", name="uq_window_support"),
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

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
