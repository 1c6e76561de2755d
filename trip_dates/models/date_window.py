# trip_dates/models/date_window.py
from datetime import datetime
import enum

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from trip_dates.models.base import Base


class WindowPrecision(str, enum.Enum):
    EXACT = "exact"
    APPROX = "approx"
    UNSTRUCTURED = "unstructured"


class WindowType(str, enum.Enum):
    AVAILABLE = "available"
    BLOCKER = "blocker"


class DateWindow(Base):
    """
    A candidate date range for a trip, submitted by one participant.

    Either `start_date`/`end_date` (explicit range) or `source_text`
    (free text) is given. Free text that could be normalized fills
    `normalized_start`/`normalized_end`; otherwise the window is
    `unstructured` and has no concrete dates.
    """

    __tablename__ = "date_windows"

    id = Column(Integer, primary_key=True, index=True)

    trip_id = Column(
        Integer,
        ForeignKey("trips.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    proposed_by = Column(String, nullable=False, index=True)

    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)

    source_text = Column(String, nullable=True)
    normalized_start = Column(Date, nullable=True)
    normalized_end = Column(Date, nullable=True)

    precision = Column(String(16), nullable=False, default=WindowPrecision.EXACT.value)
    window_type = Column(String(16), nullable=False, default=WindowType.AVAILABLE.value)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    trip = relationship("Trip", backref="date_windows")

    @property
    def range_start(self):
        return self.normalized_start or self.start_date

    @property
    def range_end(self):
        return self.normalized_end or self.end_date

    @property
    def is_blocker(self) -> bool:
        return self.window_type == WindowType.BLOCKER.value

    @property
    def is_unstructured(self) -> bool:
        return (
            self.precision == WindowPrecision.UNSTRUCTURED.value
            or self.range_start is None
            or self.range_end is None
        )
