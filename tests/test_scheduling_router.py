# tests/test_scheduling_router.py
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from trip_dates.main import app
from trip_dates.db.session import engine, SessionLocal
from trip_dates.models import (
    Base,
    DateWindow,
    Trip,
    TripEvent,
    TripParticipant,
    WindowReaction,
    WindowSupport,
)
from trip_dates.services.notification_service import get_notification_sink


class FakeNotificationSink:
    def __init__(self):
        self.events = []

    def emit(self, **kwargs):
        self.events.append(kwargs)


fake_sink = FakeNotificationSink()


def override_notification_sink():
    return fake_sink


client = TestClient(app)


def setup_module(module):
    Base.metadata.create_all(bind=engine)
    app.dependency_overrides[get_notification_sink] = override_notification_sink


def teardown_module(module):
    app.dependency_overrides.pop(get_notification_sink, None)


def _clean_db():
    db: Session = SessionLocal()
    try:
        db.query(WindowReaction).delete()
        db.query(WindowSupport).delete()
        db.query(DateWindow).delete()
        db.query(TripEvent).delete()
        db.query(TripParticipant).delete()
        db.query(Trip).delete()
        db.commit()
    finally:
        db.close()
    fake_sink.events.clear()


def _as(user_id):
    return {"X-User-Id": user_id}


def _create_trip():
    resp = client.post(
        "/trips",
        json={
            "name": "Madeira",
            "leaderUserId": "leader",
            "participantIds": ["bob", "carol", "dave"],
        },
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["id"]


def _add_window(trip_id, user_id, start, end, **extra):
    body = {"startDate": start, "endDate": end}
    body.update(extra)
    resp = client.post(f"/trips/{trip_id}/date-windows", json=body, headers=_as(user_id))
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_create_trip_seeds_roster():
    _clean_db()
    trip_id = _create_trip()

    resp = client.get(f"/trips/{trip_id}")
    assert resp.status_code == 200
    data = resp.json()
    assert data["leaderUserId"] == "leader"
    assert data["phase"] == "COLLECTING"
    assert [p["userId"] for p in data["participants"]] == ["leader", "bob", "carol", "dave"]

    assert client.get("/trips/999999").status_code == 404


def test_missing_user_header_is_rejected():
    _clean_db()
    trip_id = _create_trip()

    resp = client.get(f"/trips/{trip_id}/schedule")
    assert resp.status_code == 401


def test_overlap_nudge_in_response():
    _clean_db()
    trip_id = _create_trip()

    first = _add_window(trip_id, "bob", "2025-03-10", "2025-03-15")
    assert "similarWindowId" not in first
    assert first["requiresAcknowledgement"] is False

    contained = _add_window(trip_id, "carol", "2025-03-11", "2025-03-14")
    assert contained["window"]["id"]
    assert contained["requiresAcknowledgement"] is True
    assert contained["similarWindowId"] == first["window"]["id"]
    assert contained["similarScore"] >= 0.6

    disjoint = _add_window(trip_id, "dave", "2025-05-01", "2025-05-03")
    assert "similarWindowId" not in disjoint


def test_snake_case_body_and_free_text_window():
    _clean_db()
    trip_id = _create_trip()

    resp = client.post(
        f"/trips/{trip_id}/date-windows",
        json={"text": "2025-04-01 to 2025-04-05", "window_type": "available"},
        headers=_as("bob"),
    )
    assert resp.status_code == 200, resp.text
    window = resp.json()["window"]
    assert window["normalizedStart"] == "2025-04-01"
    assert window["sourceText"] == "2025-04-01 to 2025-04-05"
    assert window["supportCount"] == 1


def test_validation_errors_carry_code():
    _clean_db()
    trip_id = _create_trip()

    resp = client.post(
        f"/trips/{trip_id}/date-windows",
        json={"startDate": "2025-03-15", "endDate": "2025-03-10"},
        headers=_as("bob"),
    )
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "VALIDATION_ERROR"

    resp = client.post(
        f"/trips/{trip_id}/date-windows",
        json={"startDate": "2025-03-01", "endDate": "2025-03-02"},
        headers=_as("mallory"),
    )
    assert resp.status_code == 403


def test_full_funnel_propose_react_lock():
    _clean_db()
    trip_id = _create_trip()

    w1 = _add_window(trip_id, "bob", "2025-03-10", "2025-03-15")["window"]["id"]
    w2 = _add_window(trip_id, "carol", "2025-04-10", "2025-04-12")["window"]["id"]

    resp = client.post(f"/trips/{trip_id}/date-windows/{w1}/support", headers=_as("dave"))
    assert resp.status_code == 200
    resp = client.post(f"/trips/{trip_id}/date-windows/{w1}/support", headers=_as("dave"))
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "DUPLICATE_SUPPORT"

    schedule = client.get(f"/trips/{trip_id}/schedule", headers=_as("dave")).json()
    assert schedule["phase"] == "COLLECTING"
    assert schedule["proposalStatus"]["proposalReady"] is True
    assert schedule["proposalStatus"]["leadingWindowId"] == w1
    assert schedule["proposalStatus"]["stats"]["thresholdNeeded"] == 2
    assert schedule["userSupportedWindowIds"] == [w1]
    assert schedule["isLeader"] is False
    assert schedule["canCreateWindow"] is True
    assert schedule["approvalSummary"] is None

    # Non-leader cannot propose
    resp = client.post(f"/trips/{trip_id}/propose-dates", json={"windowId": w1}, headers=_as("bob"))
    assert resp.status_code == 403

    resp = client.post(
        f"/trips/{trip_id}/propose-dates",
        json={"windowIds": [w1, w2]},
        headers=_as("leader"),
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["message"] == "Dates proposed"
    assert fake_sink.events[-1]["event_type"] == "dates_proposed"

    # Frozen while proposed
    resp = client.post(
        f"/trips/{trip_id}/date-windows",
        json={"startDate": "2025-06-01", "endDate": "2025-06-02"},
        headers=_as("dave"),
    )
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "PROPOSAL_ACTIVE"

    for uid in ("bob", "carol"):
        resp = client.post(
            f"/trips/{trip_id}/proposed-window/react",
            json={"windowId": w1, "reactionType": "WORKS"},
            headers=_as(uid),
        )
        assert resp.status_code == 200, resp.text

    data = resp.json()
    assert data["approvalSummary"]["approvals"] == 2
    assert data["approvalSummary"]["readyToLock"] is True
    assert data["approvalSummaries"][str(w2)]["approvals"] == 0

    schedule = client.get(f"/trips/{trip_id}/schedule", headers=_as("carol")).json()
    assert schedule["phase"] == "PROPOSED"
    assert schedule["proposedWindowIds"] == [w1, w2]
    assert schedule["proposedWindowId"] == w1
    assert schedule["approvalSummary"]["userReaction"] == "WORKS"
    assert schedule["canCreateWindow"] is False

    resp = client.post(f"/trips/{trip_id}/lock-proposed", json={}, headers=_as("leader"))
    assert resp.status_code == 200, resp.text
    trip = resp.json()["trip"]
    assert trip["phase"] == "LOCKED"
    assert trip["lockedStartDate"] == "2025-03-10"
    assert trip["lockedEndDate"] == "2025-03-15"
    assert fake_sink.events[-1]["event_type"] == "dates_locked"

    resp = client.post(f"/trips/{trip_id}/withdraw-proposal", headers=_as("leader"))
    assert resp.status_code == 400
    assert "No date proposal" in resp.json()["detail"]["error"]


def test_propose_errors_over_http():
    _clean_db()
    trip_id = _create_trip()

    ids = [
        _add_window(trip_id, "bob", "2025-03-01", "2025-03-02")["window"]["id"],
        _add_window(trip_id, "bob", "2025-04-01", "2025-04-02")["window"]["id"],
        _add_window(trip_id, "carol", "2025-05-01", "2025-05-02")["window"]["id"],
        _add_window(trip_id, "carol", "2025-06-01", "2025-06-02")["window"]["id"],
    ]
    blocker = _add_window(trip_id, "dave", "2025-07-01", "2025-07-02", windowType="blocker")["window"]["id"]

    resp = client.post(
        f"/trips/{trip_id}/propose-dates",
        json={"windowIds": ids, "leaderOverride": True},
        headers=_as("leader"),
    )
    assert resp.status_code == 400
    assert "1-3" in resp.json()["detail"]["error"]

    resp = client.post(
        f"/trips/{trip_id}/propose-dates",
        json={"windowIds": [ids[0], blocker], "leaderOverride": True},
        headers=_as("leader"),
    )
    assert resp.status_code == 400
    assert "blocker" in resp.json()["detail"]["error"]

    resp = client.post(
        f"/trips/{trip_id}/propose-dates",
        json={"windowId": ids[0]},
        headers=_as("leader"),
    )
    assert resp.status_code == 400
    assert "Not enough travelers" in resp.json()["detail"]["error"]

    resp = client.post(f"/trips/{trip_id}/lock-proposed", headers=_as("leader"))
    assert resp.status_code == 400
    assert "No dates are proposed" in resp.json()["detail"]["error"]


def test_withdraw_and_cancel_over_http():
    _clean_db()
    trip_id = _create_trip()
    w1 = _add_window(trip_id, "leader", "2025-03-10", "2025-03-15")["window"]["id"]

    resp = client.post(
        f"/trips/{trip_id}/propose-dates",
        json={"window_id": w1, "leader_override": True},
        headers=_as("leader"),
    )
    assert resp.status_code == 200, resp.text

    resp = client.post(
        f"/trips/{trip_id}/proposed-window/react",
        json={"reactionType": "caveat", "note": "only after Wednesday"},
        headers=_as("bob"),
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["windowId"] == w1
    assert resp.json()["approvalSummary"]["caveats"] == 1

    resp = client.post(f"/trips/{trip_id}/withdraw-proposal", headers=_as("leader"))
    assert resp.status_code == 200
    assert resp.json()["trip"]["phase"] == "COLLECTING"

    resp = client.post(f"/trips/{trip_id}/cancel", headers=_as("leader"))
    assert resp.status_code == 200
    assert resp.json()["trip"]["status"] == "canceled"

    resp = client.post(f"/trips/{trip_id}/date-windows/{w1}/support", headers=_as("bob"))
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "TRIP_CANCELED"

    types = [e["event_type"] for e in fake_sink.events]
    assert types == ["dates_proposed", "proposal_withdrawn", "trip_canceled"]


def test_schedule_insight_is_informational():
    _clean_db()
    trip_id = _create_trip()
    w1 = _add_window(trip_id, "bob", "2025-03-10", "2025-03-15")["window"]["id"]
    client.post(f"/trips/{trip_id}/date-windows/{w1}/support", headers=_as("carol"))

    resp = client.get(f"/trips/{trip_id}/schedule/insight", headers=_as("bob"))
    assert resp.status_code == 200
    data = resp.json()
    assert data["source"] == "fallback"
    assert data["text"]
    assert data["recommendation"]["confirmedRatio"] == 0.5
    assert data["recommendation"]["label"] == "moderate"

    resp = client.get(f"/trips/{trip_id}/schedule/insight", headers=_as("mallory"))
    assert resp.status_code == 403


def test_empty_shortlist_gets_range_message():
    _clean_db()
    trip_id = _create_trip()

    for body in ({"windowIds": []}, {}):
        resp = client.post(f"/trips/{trip_id}/propose-dates", json=body, headers=_as("leader"))
        assert resp.status_code == 400
        assert "1-3" in resp.json()["detail"]["error"]
