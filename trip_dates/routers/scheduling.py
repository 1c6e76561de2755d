# trip_dates/routers/scheduling.py
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from trip_dates.config import Settings, get_settings
from trip_dates.db.session import get_db
from trip_dates.schemas.scheduling import (
    CreateWindowPayload,
    LockPayload,
    ProposePayload,
    ReactPayload,
)
from trip_dates.services import proposal_service, window_service
from trip_dates.services.advisory_service import build_scheduling_insight
from trip_dates.services.errors import SchedulingError
from trip_dates.services.notification_service import NotificationSink, get_notification_sink
from trip_dates.services.phase_service import ensure_member, get_trip_or_404
from trip_dates.services.reaction_service import react
from trip_dates.services.roster_service import get_roster
from trip_dates.services.schedule_service import get_schedule, trip_to_dict, window_to_dict

router = APIRouter(prefix="/trips", tags=["scheduling"])


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """
    Caller identity. Authentication happens upstream; we only need the id.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    return x_user_id.strip()


def _http_error(e: SchedulingError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/{trip_id}/schedule")
def read_schedule(
    trip_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    try:
        return get_schedule(db, trip_id=trip_id, user_id=user_id, settings=settings)
    except SchedulingError as e:
        raise _http_error(e)


@router.post("/{trip_id}/date-windows")
def create_date_window(
    trip_id: int,
    payload: CreateWindowPayload,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """
    Suggest a date range (or a blocker).

    A high-overlap match never blocks creation; it only adds
    requiresAcknowledgement / similarWindowId / similarScore so the client
    can offer "support the existing one instead".
    """
    try:
        result = window_service.create_window(
            db,
            trip_id=trip_id,
            user_id=user_id,
            start_date=payload.start_date,
            end_date=payload.end_date,
            text=payload.text,
            window_type=payload.window_type,
            acknowledge_overlap=payload.acknowledge_overlap,
            force_accept=payload.force_accept,
            settings=settings,
        )
    except SchedulingError as e:
        raise _http_error(e)

    response: Dict[str, Any] = {
        "window": window_to_dict(result.window, [user_id]),
        "requiresAcknowledgement": result.requires_acknowledgement,
    }
    if result.similar is not None:
        response["similarWindowId"] = result.similar.window_id
        response["similarScore"] = result.similar.score
    return response


@router.delete("/{trip_id}/date-windows/{window_id}")
def delete_date_window(
    trip_id: int,
    window_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    try:
        window_service.delete_window(db, trip_id=trip_id, window_id=window_id, user_id=user_id)
    except SchedulingError as e:
        raise _http_error(e)
    return {"deleted": True, "windowId": window_id}


@router.post("/{trip_id}/date-windows/{window_id}/support")
def support_date_window(
    trip_id: int,
    window_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    try:
        window_service.add_support(db, trip_id=trip_id, window_id=window_id, user_id=user_id)
    except SchedulingError as e:
        raise _http_error(e)
    return {"supported": True, "windowId": window_id}


@router.delete("/{trip_id}/date-windows/{window_id}/support")
def unsupport_date_window(
    trip_id: int,
    window_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    try:
        window_service.remove_support(db, trip_id=trip_id, window_id=window_id, user_id=user_id)
    except SchedulingError as e:
        raise _http_error(e)
    return {"supported": False, "windowId": window_id}


@router.post("/{trip_id}/propose-dates")
def propose_dates(
    trip_id: int,
    payload: ProposePayload,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    notifier: NotificationSink = Depends(get_notification_sink),
) -> Dict[str, Any]:
    concrete = payload.concrete_dates
    try:
        trip = proposal_service.propose(
            db,
            trip_id=trip_id,
            user_id=user_id,
            window_ids=payload.resolved_window_ids(),
            leader_override=payload.leader_override,
            concrete_dates=(concrete.start_date, concrete.end_date) if concrete else None,
            notifier=notifier,
            settings=settings,
        )
    except SchedulingError as e:
        raise _http_error(e)
    return {"message": "Dates proposed", "trip": trip_to_dict(trip)}


@router.post("/{trip_id}/withdraw-proposal")
def withdraw_proposal(
    trip_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notifier: NotificationSink = Depends(get_notification_sink),
) -> Dict[str, Any]:
    try:
        trip = proposal_service.withdraw(db, trip_id=trip_id, user_id=user_id, notifier=notifier)
    except SchedulingError as e:
        raise _http_error(e)
    return {"message": "Proposal withdrawn", "trip": trip_to_dict(trip)}


@router.post("/{trip_id}/proposed-window/react")
def react_to_proposed_window(
    trip_id: int,
    payload: ReactPayload,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """
    WORKS / CAVEAT / CANT on one proposed window. `windowId` defaults to
    the first proposed window for single-window clients.
    """
    try:
        summaries = react(
            db,
            trip_id=trip_id,
            window_id=payload.window_id,
            user_id=user_id,
            reaction_type=payload.reaction_type,
            note=payload.note,
        )
    except SchedulingError as e:
        raise _http_error(e)

    # Summaries are ordered like the proposal, so the first key is the default target
    window_id = payload.window_id if payload.window_id is not None else next(iter(summaries))
    return {
        "windowId": window_id,
        "approvalSummary": summaries[window_id].to_dict(),
        "approvalSummaries": {str(wid): s.to_dict() for wid, s in summaries.items()},
    }


@router.post("/{trip_id}/lock-proposed")
def lock_proposed(
    trip_id: int,
    payload: Optional[LockPayload] = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notifier: NotificationSink = Depends(get_notification_sink),
) -> Dict[str, Any]:
    payload = payload or LockPayload()
    try:
        trip = proposal_service.lock(
            db,
            trip_id=trip_id,
            user_id=user_id,
            window_id=payload.window_id,
            leader_override=payload.leader_override,
            notifier=notifier,
        )
    except SchedulingError as e:
        raise _http_error(e)
    return {"message": "Dates locked", "trip": trip_to_dict(trip)}


@router.post("/{trip_id}/cancel")
def cancel_trip(
    trip_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notifier: NotificationSink = Depends(get_notification_sink),
) -> Dict[str, Any]:
    try:
        trip = proposal_service.cancel(db, trip_id=trip_id, user_id=user_id, notifier=notifier)
    except SchedulingError as e:
        raise _http_error(e)
    return {"message": "Trip canceled", "trip": trip_to_dict(trip)}


@router.get("/{trip_id}/schedule/insight")
def read_schedule_insight(
    trip_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """
    Informational only. Nothing here feeds proposal or lock decisions.
    """
    try:
        trip = get_trip_or_404(db, trip_id)
        ensure_member(get_roster(db, trip), user_id)
    except SchedulingError as e:
        raise _http_error(e)
    return build_scheduling_insight(db, trip, settings=settings)
