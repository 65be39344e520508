"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  The production models are used unchanged:
``UTCDateTime`` keeps timestamps timezone-aware on SQLite, and a frozen
clock is injected wherever policy depends on "now".
"""

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from src.domain.enums import TripStatus
from src.infrastructure.database import Base
from src.infrastructure.models import DriverModel, SafetyRatingModel, TripModel
from src.services.wiring import build_safety_services

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"
T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now += timedelta(**delta)
        return self.now


class FakeNotifier:
    def __init__(self):
        self.sent: list[dict] = []

    async def notify(self, driver_id, kind, title, message, data=None):
        self.sent.append(
            {
                "driver_id": driver_id,
                "kind": kind,
                "title": title,
                "message": message,
                "data": data or {},
            }
        )

    def kinds(self) -> list[str]:
        return [n["kind"] for n in self.sent]


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test; StaticPool keeps it on one connection."""
    test_engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def services(db_session, notifier, clock):
    return build_safety_services(db_session, notifier, clock)


@pytest.fixture
def make_driver(db_session):
    counter = {"n": 0}

    async def _make(name: str = "Test Driver", is_online: bool = True) -> DriverModel:
        counter["n"] += 1
        driver = DriverModel(
            name=name,
            email=f"driver{counter['n']}@example.com",
            is_online=is_online,
        )
        db_session.add(driver)
        await db_session.flush()
        return driver

    return _make


@pytest.fixture
def make_trip(db_session, clock):
    async def _make(
        driver_id: int,
        *,
        speed_violations: int = 0,
        route_deviations: int = 0,
        completed_at: datetime | None = None,
        status: TripStatus = TripStatus.COMPLETED,
        rating: int | None = None,
    ) -> TripModel:
        finished = completed_at or clock()
        trip = TripModel(
            driver_id=driver_id,
            rider_id=99,
            status=status,
            speed_violation_count=speed_violations,
            route_deviation_count=route_deviations,
            started_at=finished - timedelta(minutes=20),
            completed_at=finished if status is TripStatus.COMPLETED else None,
        )
        db_session.add(trip)
        await db_session.flush()
        if rating is not None:
            db_session.add(
                SafetyRatingModel(
                    trip_id=trip.id,
                    driver_id=driver_id,
                    rider_id=99,
                    overall_safety_score=rating,
                )
            )
            await db_session.flush()
        return trip

    return _make
