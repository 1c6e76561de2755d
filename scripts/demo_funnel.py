# scripts/demo_funnel.py
"""
Walk one trip through the whole scheduling funnel against the configured DB.

Flow:
1. Create a trip with a leader and a few travelers.
2. Travelers suggest date windows and back each other's options.
3. Leader proposes the leading window, travelers react, leader locks.

Handy for eyeballing the structlog output and the trip_events outbox.
"""

from __future__ import annotations

import argparse
from datetime import date

from trip_dates.db.session import SessionLocal, engine
from trip_dates.logging_config import configure_logging
from trip_dates.models import Base, Trip, TripEvent, TripParticipant
from trip_dates.services.proposal_service import lock, propose
from trip_dates.services.reaction_service import react
from trip_dates.services.readiness_service import get_proposal_status
from trip_dates.services.roster_service import get_roster
from trip_dates.services.window_service import add_support, create_window


def run_demo(travelers: int, year: int) -> None:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        user_ids = ["leader"] + [f"traveler-{i}" for i in range(1, travelers)]
        trip = Trip(name="Demo trip", leader_user_id="leader")
        db.add(trip)
        db.commit()
        db.refresh(trip)
        for uid in user_ids:
            db.add(TripParticipant(trip_id=trip.id, user_id=uid))
        db.commit()
        print(f"[demo_funnel] Trip {trip.id} with {len(user_ids)} travelers")

        first = create_window(
            db,
            trip_id=trip.id,
            user_id=user_ids[1 % len(user_ids)],
            start_date=date(year, 3, 10),
            end_date=date(year, 3, 15),
        )
        second = create_window(
            db,
            trip_id=trip.id,
            user_id="leader",
            text=f"early April {year}",
        )
        print(
            f"[demo_funnel] Windows {first.window.id} (exact) and "
            f"{second.window.id} ({second.window.precision})"
        )

        for uid in user_ids[2:]:
            add_support(db, trip_id=trip.id, window_id=first.window.id, user_id=uid)

        status = get_proposal_status(db, trip, get_roster(db, trip))
        print(
            f"[demo_funnel] Leading window {status.leading_window.id}: "
            f"{status.stats.leader_count}/{status.stats.threshold_needed} needed, "
            f"ready={status.proposal_ready}"
        )

        propose(
            db,
            trip_id=trip.id,
            user_id="leader",
            window_ids=[status.leading_window.id],
            leader_override=not status.proposal_ready,
        )
        print("[demo_funnel] Dates proposed")

        summary = None
        for uid in user_ids:
            summary = react(
                db,
                trip_id=trip.id,
                window_id=status.leading_window.id,
                user_id=uid,
                reaction_type="WORKS",
            )[status.leading_window.id]
        print(
            f"[demo_funnel] Approvals {summary.approvals}/{summary.required_approvals}, "
            f"readyToLock={summary.ready_to_lock}"
        )

        trip = lock(db, trip_id=trip.id, user_id="leader")
        print(
            f"[demo_funnel] Locked {trip.locked_start_date.isoformat()} -> "
            f"{trip.locked_end_date.isoformat()}"
        )

        events = db.query(TripEvent).filter_by(trip_id=trip.id).order_by(TripEvent.id.asc()).all()
        print(f"[demo_funnel] Outbox: {[e.event_type for e in events]}")
    finally:
        db.close()


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--travelers",
        type=int,
        default=4,
        help="Roster size including the leader (min 2)",
    )
    parser.add_argument(
        "--year",
        type=int,
        default=date.today().year + 1,
        help="Year the suggested windows fall in",
    )
    args = parser.parse_args()
    configure_logging()
    run_demo(travelers=max(args.travelers, 2), year=args.year)


if __name__ == "__main__":
    main()
