# trip_dates/models/__init__.py
from trip_dates.models.base import Base  # noqa: F401

from trip_dates.models.trip import Trip  # noqa: F401
from trip_dates.models.trip_participant import TripParticipant  # noqa: F401
from trip_dates.models.date_window import DateWindow  # noqa: F401
from trip_dates.models.window_support import WindowSupport  # noqa: F401
from trip_dates.models.window_reaction import WindowReaction  # noqa: F401
from trip_dates.models.trip_event import TripEvent  # noqa: F401
