import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from haulscore.errors import PreconditionError, TripStoreError
from haulscore.models.performance import Grade
from haulscore.models.trip import Trip
from haulscore.services.trip_store import TripStore, from_iso, to_iso

BASE = datetime(2024, 1, 15, 8, 30, tzinfo=timezone.utc)


def make_trip(start=BASE, minutes=30.0, grade="B", smoothness=82.0, compliance=90.0, safety=88.0):
    return Trip(
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        duration_minutes=minutes,
        distance_miles=20.0,
        average_speed=40.0,
        fuel_consumed=3.5,
        smoothness_score=smoothness,
        fuel_efficiency_mpg=7.3,
        speed_compliance_percent=compliance,
        safety_score=safety,
        overall_grade=grade,
    )


class TestInitialization:
    """Schema creation and preconditions."""

    def test_initialize_creates_schema(self, tmp_path):
        store = TripStore(tmp_path / "nested" / "trips.db")
        store.initialize()

        assert store.is_initialized
        assert store.verify()
        with sqlite3.connect(str(store.db_path)) as conn:
            indexes = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='index'")}
        assert {"idx_trips_starttime", "idx_trips_grade"} <= indexes

    def test_initialize_is_idempotent(self, store):
        store.save_trip(make_trip())
        store.initialize()
        assert len(store.get_all_trips()) == 1

    def test_operations_require_initialize(self, tmp_path):
        store = TripStore(tmp_path / "trips.db")
        with pytest.raises(PreconditionError):
            store.save_trip(make_trip())
        with pytest.raises(PreconditionError):
            store.get_recent_trips()
        with pytest.raises(PreconditionError):
            store.get_statistics()

    def test_initialize_failure_raises(self, tmp_path):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("x")
        store = TripStore(blocker / "trips.db")
        errors = []
        store.error_occurred.connect(errors.append)

        with pytest.raises(TripStoreError):
            store.initialize()
        assert not store.is_initialized
        assert len(errors) == 1


class TestSaveAndQuery:
    """Saving trips and reading them back."""

    def test_round_trip(self, store):
        trip = make_trip()
        saved_ids = []
        store.trip_saved.connect(saved_ids.append)

        trip_id = store.save_trip(trip)
        loaded = store.get_recent_trips(1)[0]

        assert trip.id == trip_id
        assert saved_ids == [trip_id]
        assert loaded.id == trip_id
        assert loaded.start_time == trip.start_time
        assert loaded.end_time == trip.end_time
        assert loaded.duration_minutes == pytest.approx(30.0)
        assert loaded.smoothness_score == pytest.approx(82.0)
        assert loaded.fuel_efficiency_mpg == pytest.approx(7.3)
        assert loaded.safety_score == pytest.approx(88.0)
        assert loaded.grade == Grade.B

    def test_unfinalized_trip_rejected(self, store):
        with pytest.raises(ValueError):
            store.save_trip(Trip(start_time=BASE))

    def test_recent_trips_newest_first(self, store):
        for day in (2, 0, 1):
            store.save_trip(make_trip(start=BASE + timedelta(days=day)))

        starts = [t.start_time for t in store.get_recent_trips(2)]
        assert starts == [BASE + timedelta(days=2), BASE + timedelta(days=1)]

    def test_recent_trips_count_must_be_positive(self, store):
        with pytest.raises(ValueError):
            store.get_recent_trips(0)

    def test_date_range_inclusive(self, store):
        for day in range(5):
            store.save_trip(make_trip(start=BASE + timedelta(days=day)))

        trips = store.get_trips_by_date_range(BASE + timedelta(days=1), BASE + timedelta(days=3))
        assert [t.start_time for t in trips] == [
            BASE + timedelta(days=3),
            BASE + timedelta(days=2),
            BASE + timedelta(days=1),
        ]

    def test_date_range_naive_is_utc(self, store):
        store.save_trip(make_trip())
        naive = BASE.replace(tzinfo=None)
        assert len(store.get_trips_by_date_range(naive, naive)) == 1

    def test_date_range_reversed_rejected(self, store):
        with pytest.raises(ValueError):
            store.get_trips_by_date_range(BASE, BASE - timedelta(seconds=1))

    def test_delete_trip(self, store):
        trip_id = store.save_trip(make_trip())
        assert store.delete_trip(trip_id)
        assert not store.delete_trip(trip_id)
        assert store.get_all_trips() == []


class TestStatistics:
    """Aggregates over the trip history."""

    def test_empty_statistics(self, store):
        stats = store.get_statistics()
        assert stats.total_trips == 0
        assert stats.total_distance_miles == 0.0
        assert stats.average_overall_score == 0.0
        assert stats.best_grade is None
        assert stats.worst_grade is None
        assert stats.grade_counts == {}

    def test_aggregates(self, store):
        store.save_trip(make_trip(minutes=30.0, smoothness=80.0, compliance=90.0, safety=100.0))
        store.save_trip(
            make_trip(start=BASE + timedelta(hours=2), minutes=60.0, smoothness=90.0, compliance=70.0, safety=80.0)
        )

        stats = store.get_statistics()
        assert stats.total_trips == 2
        assert stats.total_distance_miles == pytest.approx(40.0)
        assert stats.total_duration_minutes == pytest.approx(90.0)
        assert stats.total_fuel_consumed == pytest.approx(7.0)
        assert stats.average_smoothness_score == pytest.approx(85.0)
        assert stats.average_speed_compliance_percent == pytest.approx(80.0)
        assert stats.average_safety_score == pytest.approx(90.0)
        assert stats.average_overall_score == pytest.approx(85.0)
        assert stats.average_trip_duration == pytest.approx(45.0)

    def test_best_and_worst_by_rank(self, store):
        # Text order would put "A" before "A+" and "B+" after "B"
        for grade in ("B", "A", "B+", "A+", "D"):
            store.save_trip(make_trip(grade=grade))

        stats = store.get_statistics()
        assert stats.best_grade == Grade.A_PLUS
        assert stats.worst_grade == Grade.D
        assert stats.grade_counts[Grade.B_PLUS] == 1

    def test_average_grade_score(self, store):
        for grade in ("A", "A", "C", "N/A"):
            store.save_trip(make_trip(grade=grade))

        stats = store.get_statistics()
        # Ungraded trips are left out of the grade average
        assert stats.average_grade_score == pytest.approx((92.5 * 2 + 72.5) / 3)

    def test_average_grade_score_empty(self, store):
        assert store.get_statistics().average_grade_score == 0.0


class TestCleanup:
    """Retention cleanup."""

    def test_cleanup_old_trips(self, store):
        now = BASE + timedelta(days=400)
        store.save_trip(make_trip(start=BASE))
        store.save_trip(make_trip(start=now - timedelta(days=10)))

        deleted = store.cleanup_old_trips(365, now=now)

        assert deleted == 1
        assert len(store.get_all_trips()) == 1

    def test_cleanup_zero_days_deletes_all_before_now(self, store):
        now = BASE + timedelta(hours=1)
        store.save_trip(make_trip(start=BASE))
        store.save_trip(make_trip(start=now + timedelta(minutes=5)))

        assert store.cleanup_old_trips(0, now=now) == 1
        assert [t.start_time for t in store.get_all_trips()] == [now + timedelta(minutes=5)]

    def test_cleanup_uses_configured_retention(self, tmp_path):
        store = TripStore(tmp_path / "trips.db", retention_days=7)
        store.initialize()
        store.save_trip(make_trip(start=BASE))
        store.save_trip(make_trip(start=BASE + timedelta(days=5)))

        assert store.cleanup_old_trips(now=BASE + timedelta(days=8)) == 1
        assert len(store.get_all_trips()) == 1

    def test_cleanup_nothing_to_delete(self, store):
        store.save_trip(make_trip(start=BASE))
        assert store.cleanup_old_trips(30, now=BASE + timedelta(days=1)) == 0


class TestIsoFormat:
    """Stored timestamp format."""

    def test_fixed_width_utc(self):
        assert to_iso(BASE) == "2024-01-15T08:30:00.000000+00:00"

    def test_naive_treated_as_utc(self):
        assert to_iso(BASE.replace(tzinfo=None)) == to_iso(BASE)

    def test_from_iso_round_trip(self):
        assert from_iso(to_iso(BASE)) == BASE
