# trip_dates/services/advisory_service.py
from __future__ import annotations

from typing import Any, Dict, Optional

import structlog
from openai import OpenAI
from sqlalchemy.orm import Session

from trip_dates.config import Settings, get_settings
from trip_dates.models.trip import Trip
from trip_dates.services.phase_service import get_phase
from trip_dates.services.readiness_service import ProposalStatus, get_proposal_status
from trip_dates.services.roster_service import get_roster

log = structlog.get_logger(__name__)


def _confirmed_label(ratio: float) -> str:
    if ratio >= 0.75:
        return "strong"
    if ratio >= 0.5:
        return "moderate"
    return "weak"


def build_recommendation(status: ProposalStatus) -> Dict[str, Any]:
    """
    Display-only heuristic: share of travelers backing the leading window.
    Never used to decide proposalReady.
    """
    total = status.stats.total_travelers
    ratio = (status.stats.leader_count / total) if total else 0.0
    ratio = round(ratio, 2)
    return {
        "windowId": status.leading_window.id if status.leading_window else None,
        "confirmedRatio": ratio,
        "label": _confirmed_label(ratio),
    }


def _fallback_text(trip: Trip, status: ProposalStatus) -> str:
    """
    Deterministic, test-friendly summary.
    """
    stats = status.stats
    if status.leading_window is None:
        return f"No date options have been suggested for {trip.name} yet."

    window = status.leading_window
    if window.is_unstructured:
        label = f'"{window.source_text}"'
    else:
        label = f"{window.range_start.isoformat()} to {window.range_end.isoformat()}"

    text = (
        f"{stats.leader_count} of {stats.total_travelers} travelers can make {label}. "
        f"{stats.responder_count} have responded so far."
    )
    if status.proposal_ready:
        text += " That is enough support for the leader to propose these dates."
    else:
        missing = stats.threshold_needed - stats.leader_count
        text += f" {missing} more needed before these dates are ready to propose."
    if status.runner_up is not None:
        text += f" Runner-up has {status.runner_up.count} supporters."
    return text


def _openai_text(settings: Settings, trip: Trip, fallback: str) -> str:
    client = OpenAI(api_key=settings.openai_api_key)
    user_content = (
        "You help a group of friends agree on trip dates.\n\n"
        f"Trip: {trip.name}\n"
        f"Current state:\n{fallback}\n\n"
        "Write two short, friendly sentences summarising where the group stands "
        "and what would help them decide. Do not invent dates or travelers."
    )
    resp = client.chat.completions.create(
        model=settings.openai_model,
        temperature=0,
        messages=[
            {
                "role": "system",
                "content": "You summarise group scheduling progress. You never make decisions.",
            },
            {"role": "user", "content": user_content},
        ],
    )
    text = (resp.choices[0].message.content or "").strip()
    if not text:
        raise ValueError("Empty model output")
    return text


def build_scheduling_insight(
    db: Session,
    trip: Trip,
    settings: Optional[Settings] = None,
) -> Dict[str, Any]:
    """
    Informational summary for the schedule screen.

    - If OpenAI is disabled or not configured: deterministic text.
    - If it is configured: ask the model to phrase the same facts; on *any*
      error fall back to the deterministic text.
    """
    settings = settings or get_settings()
    roster = get_roster(db, trip)
    status = get_proposal_status(db, trip, roster)

    fallback = _fallback_text(trip, status)
    result = {
        "phase": get_phase(trip).value,
        "source": "fallback",
        "text": fallback,
        "recommendation": build_recommendation(status),
    }

    if not settings.enable_openai or not settings.openai_api_key:
        return result

    try:
        result["text"] = _openai_text(settings, trip, fallback)
        result["source"] = "openai"
    except Exception:
        log.exception("scheduling_insight_openai_failed", trip_id=trip.id)

    return result
