"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 6 sample drivers
  - 5 completed trips per driver (some with violations / deviations)
  - a rider safety rating for every trip
  - one strike for driver #2 and two strikes for driver #3 (which
    escalates to a 7-day temporary suspension)
  - a freshly computed safety profile for every driver
"""

import asyncio
from datetime import timedelta

from sqlalchemy import text

from src.domain.enums import Severity, StrikeType, TripStatus
from src.domain.policy import utcnow
from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.models import DriverModel, SafetyRatingModel, TripModel
from src.services.wiring import build_safety_services

DRIVERS = [
    {"name": "Maya Okafor", "email": "maya@example.com"},
    {"name": "Luis Fernandez", "email": "luis@example.com"},
    {"name": "Hana Suzuki", "email": "hana@example.com"},
    {"name": "Tom Becker", "email": "tom@example.com"},
    {"name": "Amara Diallo", "email": "amara@example.com"},
    {"name": "Jon Eriksen", "email": "jon@example.com"},
]

# (speed_violation_count, route_deviation_count, safety score) per trip, oldest first
TRIP_PATTERNS = [
    [(0, 0, 5), (0, 0, 5), (0, 0, 4), (0, 0, 5), (0, 0, 5)],
    [(0, 0, 4), (1, 0, 3), (0, 0, 5), (0, 0, 4), (0, 0, 5)],
    [(2, 1, 2), (0, 0, 4), (1, 0, 3), (0, 1, 3), (0, 0, 4)],
    [(0, 0, 5), (0, 0, 5), (0, 0, 5), (0, 0, 5), (0, 1, 4)],
    [(0, 0, 3), (0, 0, 4), (0, 0, 4), (0, 0, 5), (0, 0, 5)],
    [(0, 0, 5), (0, 0, 5), (0, 0, 5), (0, 0, 5), (0, 0, 5)],
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM drivers"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        now = utcnow()

        # ── Drivers ───────────────────────────────────────────────────
        drivers = [DriverModel(name=d["name"], email=d["email"]) for d in DRIVERS]
        session.add_all(drivers)
        await session.flush()
        print(f"  Created {len(drivers)} drivers")

        # ── Trips + ratings ───────────────────────────────────────────
        trips_by_driver: dict[int, list[TripModel]] = {}
        for driver, pattern in zip(drivers, TRIP_PATTERNS):
            trips = []
            for i, (speeding, deviations, _) in enumerate(pattern):
                finished = now - timedelta(days=len(pattern) - i)
                trip = TripModel(
                    driver_id=driver.id,
                    rider_id=1000 + driver.id * 10 + i,
                    status=TripStatus.COMPLETED,
                    speed_violation_count=speeding,
                    route_deviation_count=deviations,
                    started_at=finished - timedelta(minutes=25),
                    completed_at=finished,
                )
                session.add(trip)
                trips.append(trip)
            await session.flush()
            for trip, (_, _, score) in zip(trips, pattern):
                session.add(
                    SafetyRatingModel(
                        trip_id=trip.id,
                        driver_id=driver.id,
                        rider_id=trip.rider_id,
                        overall_safety_score=score,
                    )
                )
            trips_by_driver[driver.id] = trips
        await session.flush()
        print(f"  Created {sum(len(t) for t in trips_by_driver.values())} trips")

        # ── Strikes (through the ledger so escalation runs) ──────────
        services = build_safety_services(session)
        luis, hana = drivers[1], drivers[2]
        await services.strikes.issue_strike(
            luis.id,
            trips_by_driver[luis.id][1].id,
            StrikeType.SPEED_VIOLATION,
            "Sustained speeding on the highway segment",
            Severity.LOW,
        )
        await services.strikes.issue_strike(
            hana.id,
            trips_by_driver[hana.id][0].id,
            StrikeType.ROUTE_DEVIATION,
            "Left the planned route without rider consent",
            Severity.MEDIUM,
        )
        await services.strikes.issue_strike(
            hana.id,
            trips_by_driver[hana.id][2].id,
            StrikeType.RIDER_REPORT,
            "Rider reported aggressive lane changes",
            Severity.MEDIUM,
        )
        print("  Issued 3 strikes (1 temporary suspension)")

        # ── Profiles ──────────────────────────────────────────────────
        for driver in drivers:
            await services.profiles.update_driver_safety_profile(driver.id)
        print(f"  Computed {len(drivers)} safety profiles")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
