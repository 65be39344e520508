"""Unit tests for trip and rating scoring behind the safety profile."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from src.domain.enums import TripStatus
from src.domain.scoring import summarize_ratings, summarize_trips, trip_is_clean

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def trip(speeding=0, deviations=0, days_ago=0):
    return SimpleNamespace(
        speed_violation_count=speeding,
        route_deviation_count=deviations,
        completed_at=T0 - timedelta(days=days_ago),
    )


class TestTripSummary:
    def test_no_trips_gives_perfect_scores(self):
        summary = summarize_trips([])
        assert summary.route_adherence_score == 100
        assert summary.speed_compliance_score == 100
        assert summary.safe_trips_streak == 0
        assert summary.last_violation_at is None

    def test_streak_stops_at_first_dirty_trip(self):
        trips = [trip(days_ago=0), trip(days_ago=1), trip(days_ago=2), trip(speeding=1, days_ago=3), trip(days_ago=4)]
        summary = summarize_trips(trips)
        assert summary.safe_trips_streak == 3
        assert summary.last_violation_at == T0 - timedelta(days=3)

    def test_percentages_are_rounded(self):
        trips = [trip(), trip(deviations=2), trip(speeding=1)]
        summary = summarize_trips(trips)
        assert summary.route_adherence_score == 67
        assert summary.speed_compliance_score == 67
        assert summary.total_trips == 3

    def test_all_clean(self):
        summary = summarize_trips([trip() for _ in range(4)])
        assert summary.safe_trips_streak == 4
        assert summary.speed_compliance_score == 100

    def test_clean_means_no_deviation_and_no_speeding(self):
        assert trip_is_clean(trip())
        assert not trip_is_clean(trip(deviations=1))
        assert not trip_is_clean(trip(speeding=1))


class TestRatingSummary:
    def test_no_ratings_defaults_to_five(self):
        summary = summarize_ratings([])
        assert summary.safety_rating == 5.0
        assert summary.total_safety_ratings == 0
        assert summary.rating_distribution == {1: 0, 2: 0, 3: 0, 4: 0, 5: 0}

    def test_average_rounded_to_one_decimal(self):
        summary = summarize_ratings([5, 4, 4])
        assert summary.safety_rating == 4.3
        assert summary.rating_distribution[4] == 2
        assert summary.total_safety_ratings == 3

    def test_out_of_range_scores_are_clamped(self):
        summary = summarize_ratings([0, 9])
        assert summary.rating_distribution[1] == 1
        assert summary.rating_distribution[5] == 1
        assert summary.safety_rating == 3.0


class TestStoredTripWindow:
    """The profile reads completed trips from the database, newest first."""

    @pytest.mark.asyncio
    async def test_only_the_latest_hundred_trips_are_scored(
        self, services, make_driver, make_trip, clock
    ):
        driver = await make_driver()
        for minutes_ago in range(1, 101):
            await make_trip(
                driver.id, completed_at=clock.now - timedelta(minutes=minutes_ago)
            )
        # Inserted last, completed first: falls outside the window.
        await make_trip(
            driver.id,
            speed_violations=2,
            route_deviations=1,
            completed_at=clock.now - timedelta(days=30),
        )

        profile = await services.profiles.update_driver_safety_profile(driver.id)

        assert profile.speed_compliance_score == 100
        assert profile.route_adherence_score == 100
        assert profile.safe_trips_streak == 100
        assert profile.last_violation_at is None

    @pytest.mark.asyncio
    async def test_streak_stops_at_fourth_newest_deviation(
        self, services, make_driver, make_trip, clock
    ):
        driver = await make_driver()
        deviated = await make_trip(
            driver.id, route_deviations=1, completed_at=clock.now - timedelta(hours=4)
        )
        for hours_ago in (1, 3, 2):
            await make_trip(driver.id, completed_at=clock.now - timedelta(hours=hours_ago))
        await make_trip(
            driver.id, speed_violations=1, completed_at=clock.now - timedelta(hours=5)
        )
        await make_trip(driver.id, speed_violations=3, status=TripStatus.CANCELLED)

        profile = await services.profiles.update_driver_safety_profile(driver.id)

        assert profile.safe_trips_streak == 3
        assert profile.last_violation_at == deviated.completed_at
        assert profile.route_adherence_score == 80
        assert profile.speed_compliance_score == 80
