# trip_dates/services/notification_service.py
from typing import Any, Callable, Dict, Optional

import structlog
from sqlalchemy.orm import Session

from trip_dates.db.session import SessionLocal
from trip_dates.models.trip_event import TripEvent

log = structlog.get_logger(__name__)


class TripEventType:
    DATES_PROPOSED = "dates_proposed"
    PROPOSAL_WITHDRAWN = "proposal_withdrawn"
    DATES_LOCKED = "dates_locked"
    TRIP_CANCELED = "trip_canceled"


class NotificationSink:
    """
    Fire-and-forget outlet for scheduling events.

    Events land in the `trip_events` outbox (own session, own commit) where
    the chat subsystem turns them into system messages. Emitting never
    raises: a failed emit is logged and the triggering transition stands.

    Tests replace this via `app.dependency_overrides[get_notification_sink]`.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    def emit(
        self,
        *,
        trip_id: int,
        event_type: str,
        actor_user_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        db = self._session_factory()
        try:
            db.add(
                TripEvent(
                    trip_id=trip_id,
                    event_type=event_type,
                    actor_user_id=actor_user_id,
                    payload=payload or {},
                )
            )
            db.commit()
            log.info("trip_event_emitted", trip_id=trip_id, event_type=event_type)
        except Exception:
            db.rollback()
            log.exception("trip_event_emit_failed", trip_id=trip_id, event_type=event_type)
        finally:
            db.close()


def get_notification_sink() -> NotificationSink:
    """
    FastAPI dependency returning the default outbox-backed sink.
    """
    return NotificationSink()
