# tests/test_reaction_service.py
from datetime import date, datetime

import pytest
from sqlalchemy.orm import Session

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
from trip_dates.services.errors import SchedulingError
from trip_dates.services.proposal_service import propose
from trip_dates.services.reaction_service import (
    build_approval_summary,
    react,
    required_approvals,
)
from trip_dates.services.roster_service import Roster
from trip_dates.services.window_service import create_window


class FakeSink:
    def emit(self, **kwargs):
        pass


def setup_module(module):
    Base.metadata.create_all(bind=engine)


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


def _proposed_trip(db: Session, window_count=1):
    trip = Trip(name="Porto", leader_user_id="leader")
    db.add(trip)
    db.commit()
    db.refresh(trip)
    for uid in ("leader", "bob", "carol", "dave"):
        db.add(TripParticipant(trip_id=trip.id, user_id=uid))
    db.commit()

    windows = []
    creators = ["bob", "carol", "dave"]
    for i in range(window_count):
        windows.append(
            create_window(
                db,
                trip_id=trip.id,
                user_id=creators[i],
                start_date=date(2025, 3 + i, 1),
                end_date=date(2025, 3 + i, 4),
            ).window
        )
    window_ids = [w.id for w in windows]
    propose(
        db,
        trip_id=trip.id,
        user_id="leader",
        window_ids=window_ids,
        leader_override=True,
        notifier=FakeSink(),
    )
    return trip, window_ids


def test_required_approvals():
    assert required_approvals(0) == 1
    assert required_approvals(1) == 1
    assert required_approvals(4) == 2
    assert required_approvals(5) == 3


def test_changing_reaction_moves_buckets_without_double_counting():
    _clean_db()
    db: Session = SessionLocal()
    try:
        trip, (window_id,) = _proposed_trip(db)

        summaries = react(db, trip_id=trip.id, window_id=window_id, user_id="bob", reaction_type="WORKS")
        summary = summaries[window_id]
        assert (summary.approvals, summary.cants, summary.total_reactions) == (1, 0, 1)

        summaries = react(
            db, trip_id=trip.id, window_id=window_id, user_id="bob", reaction_type="CANT", note="work trip"
        )
        summary = summaries[window_id]
        assert (summary.approvals, summary.cants, summary.total_reactions) == (0, 1, 1)
        assert summary.user_reaction == "CANT"
        assert summary.reactions[0]["note"] == "work trip"

        assert db.query(WindowReaction).filter_by(window_id=window_id, user_id="bob").count() == 1
    finally:
        db.close()


def test_ready_to_lock_at_majority():
    _clean_db()
    db: Session = SessionLocal()
    try:
        trip, (window_id,) = _proposed_trip(db)

        react(db, trip_id=trip.id, window_id=window_id, user_id="bob", reaction_type="WORKS")
        react(db, trip_id=trip.id, window_id=window_id, user_id="carol", reaction_type="CAVEAT")
        summary = react(
            db, trip_id=trip.id, window_id=window_id, user_id="dave", reaction_type="WORKS"
        )[window_id]

        assert summary.approvals == 2
        assert summary.caveats == 1
        assert summary.required_approvals == 2
        assert summary.member_count == 4
        assert summary.ready_to_lock is True
        assert summary.to_dict()["readyToLock"] is True
    finally:
        db.close()


def test_shortlist_summaries_are_independent():
    _clean_db()
    db: Session = SessionLocal()
    try:
        trip, window_ids = _proposed_trip(db, window_count=2)

        react(db, trip_id=trip.id, window_id=window_ids[0], user_id="bob", reaction_type="WORKS")
        summaries = react(
            db, trip_id=trip.id, window_id=window_ids[1], user_id="bob", reaction_type="CANT"
        )

        assert list(summaries) == window_ids
        assert summaries[window_ids[0]].approvals == 1
        assert summaries[window_ids[0]].cants == 0
        assert summaries[window_ids[1]].approvals == 0
        assert summaries[window_ids[1]].cants == 1
    finally:
        db.close()


def test_react_defaults_to_first_proposed_window():
    _clean_db()
    db: Session = SessionLocal()
    try:
        trip, window_ids = _proposed_trip(db, window_count=2)

        summaries = react(db, trip_id=trip.id, window_id=None, user_id="carol", reaction_type="WORKS")

        assert summaries[window_ids[0]].approvals == 1
        assert summaries[window_ids[1]].approvals == 0
    finally:
        db.close()


def test_react_requires_active_proposal():
    _clean_db()
    db: Session = SessionLocal()
    try:
        trip = Trip(name="Porto", leader_user_id="leader")
        db.add(trip)
        db.commit()
        db.add(TripParticipant(trip_id=trip.id, user_id="leader"))
        db.commit()

        with pytest.raises(SchedulingError) as exc:
            react(db, trip_id=trip.id, window_id=1, user_id="leader", reaction_type="WORKS")
        assert exc.value.status_code == 400
        assert "No dates are proposed" in exc.value.message
    finally:
        db.close()


def test_react_rejects_window_outside_proposal_and_non_members():
    _clean_db()
    db: Session = SessionLocal()
    try:
        trip, (window_id,) = _proposed_trip(db)

        with pytest.raises(SchedulingError) as exc:
            react(db, trip_id=trip.id, window_id=window_id + 1000, user_id="bob", reaction_type="WORKS")
        assert exc.value.status_code == 400

        with pytest.raises(SchedulingError) as exc:
            react(db, trip_id=trip.id, window_id=window_id, user_id="mallory", reaction_type="WORKS")
        assert exc.value.status_code == 403
    finally:
        db.close()


def test_reactions_from_departed_travelers_are_ignored():
    now = datetime(2025, 1, 1, 12, 0)
    reactions = [
        WindowReaction(id=1, window_id=7, user_id="bob", reaction_type="WORKS", created_at=now, updated_at=now),
        WindowReaction(id=2, window_id=7, user_id="gone", reaction_type="WORKS", created_at=now, updated_at=now),
        WindowReaction(id=3, window_id=8, user_id="carol", reaction_type="WORKS", created_at=now, updated_at=now),
    ]
    roster = Roster(total_active_travelers=3, leader_user_id="leader", active_user_ids=["leader", "bob", "carol"])

    summary = build_approval_summary(7, reactions, roster, user_id="bob")

    assert summary.approvals == 1
    assert summary.total_reactions == 1
    assert summary.required_approvals == 2
    assert summary.ready_to_lock is False
    assert summary.user_reaction == "WORKS"
