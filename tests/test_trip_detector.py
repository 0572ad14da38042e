import pytest
from PySide6.QtCore import QThreadPool

from conftest import T0, make_sample
from haulscore.config.settings import Settings
from haulscore.errors import TripStoreError
from haulscore.models.telemetry import Vector3
from haulscore.models.trip import TripState
from haulscore.services.performance_calculator import PerformanceCalculator
from haulscore.services.trip_detector import TripDetector
from haulscore.services.trip_store import TripStore
from haulscore.utils.geo import KM_TO_MILES, LITERS_TO_GALLONS


class FailingStore:
    """Store double whose writes always fail."""

    def save_trip(self, trip):
        raise TripStoreError("disk full")


def make_detector(store, **settings_overrides):
    values = {"background_saves": False}
    values.update(settings_overrides)
    settings = Settings(**values)
    return TripDetector(store, PerformanceCalculator(), settings)


class TestTripStart:
    """Trip start detection."""

    def test_first_moving_sample_starts_trip(self, store):
        detector = make_detector(store)
        started = []
        detector.trip_started.connect(started.append)

        detector.update_from_sample(make_sample(0, speed_kph=30.0, odometer_km=100.0))

        assert detector.state == TripState.ACTIVE
        assert detector.is_trip_active
        assert len(started) == 1
        assert started[0].start_time.timestamp() == pytest.approx(T0)

    def test_stationary_does_not_start(self, store):
        detector = make_detector(store)
        for t in range(5):
            detector.update_from_sample(make_sample(t, speed_kph=0.3))
        assert detector.state == TripState.IDLE
        assert detector.current_trip is None

    def test_start_on_transition_to_moving(self, store):
        detector = make_detector(store)
        states = []
        detector.state_changed.connect(states.append)

        detector.update_from_sample(make_sample(0, speed_kph=0.0))
        detector.update_from_sample(make_sample(1, speed_kph=30.0))

        assert states == ["active"]
        assert detector.current_trip.start_time.timestamp() == pytest.approx(T0 + 1)

    def test_disconnected_samples_ignored(self, store):
        detector = make_detector(store)
        detector.update_from_sample(make_sample(0, connected=False, speed_kph=80.0))
        assert detector.state == TripState.IDLE


class TestTripEnd:
    """Stop timeout and explicit end."""

    @pytest.mark.parametrize("stop_at,ended", [(299, False), (300, False), (301, True)])
    def test_stop_timeout_boundary(self, store, stop_at, ended):
        detector = make_detector(store)
        detector.update_from_sample(make_sample(0, speed_kph=30.0))
        detector.update_from_sample(make_sample(stop_at, speed_kph=0.0))

        assert detector.is_trip_active is not ended
        assert len(store.get_all_trips()) == (1 if ended else 0)

    def test_movement_resets_timeout(self, store):
        detector = make_detector(store)
        detector.update_from_sample(make_sample(0, speed_kph=30.0))
        detector.update_from_sample(make_sample(200, speed_kph=30.0))
        detector.update_from_sample(make_sample(450, speed_kph=0.0))
        assert detector.is_trip_active

        detector.update_from_sample(make_sample(501, speed_kph=0.0))
        assert not detector.is_trip_active

    def test_timeout_ends_and_saves_trip(self, store):
        detector = make_detector(store)
        ended, saved = [], []
        detector.trip_ended.connect(ended.append)
        detector.trip_saved.connect(saved.append)

        detector.update_from_sample(make_sample(0, speed_kph=30.0))
        detector.update_from_sample(make_sample(60, speed_kph=30.0))
        detector.update_from_sample(make_sample(400, speed_kph=0.0))

        assert detector.state == TripState.IDLE
        assert len(ended) == 1
        trip = saved[0]
        assert trip.id is not None
        assert trip.is_finalized
        assert trip.duration_minutes == pytest.approx(400 / 60.0)
        assert trip.overall_grade != "N/A"

    def test_new_trip_after_end(self, store):
        detector = make_detector(store)
        detector.update_from_sample(make_sample(0, speed_kph=30.0))
        detector.update_from_sample(make_sample(400, speed_kph=0.0))
        detector.update_from_sample(make_sample(401, speed_kph=30.0))

        assert detector.is_trip_active
        assert detector.current_trip.start_time.timestamp() == pytest.approx(T0 + 401)

    def test_end_current_trip(self, store):
        detector = make_detector(store)
        detector.update_from_sample(make_sample(0, speed_kph=30.0, odometer_km=10.0))
        detector.update_from_sample(make_sample(120, speed_kph=30.0, odometer_km=11.0))

        trip = detector.end_current_trip()

        assert trip.end_time.timestamp() == pytest.approx(T0 + 120)
        assert trip.duration_minutes == pytest.approx(2.0)
        assert trip.average_speed == pytest.approx(KM_TO_MILES * 30.0)
        assert store.get_recent_trips(1)[0].id == trip.id
        assert detector.state == TripState.IDLE

    def test_end_without_trip_returns_none(self, store):
        assert make_detector(store).end_current_trip() is None

    def test_failed_save_still_returns_trip(self):
        detector = make_detector(FailingStore())
        failures = []
        detector.trip_save_failed.connect(lambda trip, message: failures.append(message))

        detector.update_from_sample(make_sample(0, speed_kph=30.0))
        trip = detector.end_current_trip(T0 + 30)

        assert trip is not None
        assert trip.id is None
        assert failures == ["disk full"]
        assert detector.state == TripState.IDLE

    def test_reset_drops_trip(self, store):
        detector = make_detector(store)
        detector.update_from_sample(make_sample(0, speed_kph=30.0))
        detector.reset()
        assert detector.current_trip is None
        assert store.get_all_trips() == []


class TestAccumulation:
    """Distance and fuel accumulation."""

    def test_odometer_distance(self, store):
        detector = make_detector(store)
        detector.update_from_sample(make_sample(0, speed_kph=60.0, odometer_km=1000.0))
        detector.update_from_sample(make_sample(30, speed_kph=60.0, odometer_km=1000.5))
        detector.update_from_sample(make_sample(60, speed_kph=60.0, odometer_km=1001.0))

        assert detector.current_trip.distance_miles == pytest.approx(KM_TO_MILES)

    def test_position_fallback_without_odometer(self, store):
        detector = make_detector(store)
        detector.update_from_sample(make_sample(0, speed_kph=60.0, position=Vector3(0.0, 0.0, 0.0)))
        detector.update_from_sample(make_sample(1, speed_kph=60.0, position=Vector3(0.0, 0.0, 100.0)))

        assert detector.current_trip.distance_miles == pytest.approx(100.0 * 0.000621371)

    def test_position_teleport_ignored(self, store):
        detector = make_detector(store)
        detector.update_from_sample(make_sample(0, speed_kph=60.0, position=Vector3(0.0, 0.0, 0.0)))
        detector.update_from_sample(make_sample(1, speed_kph=60.0, position=Vector3(0.0, 0.0, 5000.0)))

        assert detector.current_trip.distance_miles == 0.0

    def test_stalled_odometer_not_double_counted(self, store):
        """Crawling at 1 m/s, 10 Hz, with an odometer that only ticks every metre."""
        detector = make_detector(store)
        for i in range(101):
            detector.update_from_sample(
                make_sample(
                    i * 0.1,
                    speed_kph=3.6,
                    odometer_km=1000.0 + (i // 10) * 0.001,
                    position=Vector3(0.0, 0.0, i * 0.1),
                )
            )

        assert detector.current_trip.distance_miles == pytest.approx(10.0 * 0.000621371, rel=0.05)

    def test_odometer_appearing_mid_trip_not_counted_whole(self, store):
        detector = make_detector(store)
        detector.update_from_sample(make_sample(0, speed_kph=60.0))
        detector.update_from_sample(make_sample(1, speed_kph=60.0, odometer_km=5000.0))
        detector.update_from_sample(make_sample(2, speed_kph=60.0, odometer_km=5000.02))

        assert detector.current_trip.distance_miles == pytest.approx(0.02 * KM_TO_MILES)

    def test_fuel_consumed(self, store):
        detector = make_detector(store)
        detector.update_from_sample(make_sample(0, speed_kph=60.0, fuel_amount=500.0))
        detector.update_from_sample(make_sample(10, speed_kph=60.0, fuel_amount=495.0))
        # Refuel does not count as consumption
        detector.update_from_sample(make_sample(20, speed_kph=60.0, fuel_amount=600.0))
        detector.update_from_sample(make_sample(30, speed_kph=60.0, fuel_amount=590.0))

        assert detector.current_trip.fuel_consumed == pytest.approx(15.0 * LITERS_TO_GALLONS)

    def test_stats_updates_throttled(self, store):
        detector = make_detector(store, trip_stats_interval_sec=5.0)
        updates = []
        detector.trip_stats_updated.connect(updates.append)

        for t in range(0, 11):
            detector.update_from_sample(make_sample(t, speed_kph=60.0))

        assert len(updates) == 2


class TestBackgroundSave:
    """Timeout-triggered saves on the thread pool."""

    def test_background_save_completes(self, tmp_path):
        store = TripStore(tmp_path / "trips.db")
        store.initialize()
        pool = QThreadPool()
        detector = TripDetector(
            store, PerformanceCalculator(), Settings(background_saves=True), thread_pool=pool
        )

        detector.update_from_sample(make_sample(0, speed_kph=30.0))
        detector.update_from_sample(make_sample(400, speed_kph=0.0))
        assert pool.waitForDone(5000)

        assert len(store.get_all_trips()) == 1

    def test_background_save_uninitialized_store(self, tmp_path):
        store = TripStore(tmp_path / "trips.db")
        pool = QThreadPool()
        detector = TripDetector(
            store, PerformanceCalculator(), Settings(background_saves=True), thread_pool=pool
        )

        detector.update_from_sample(make_sample(0, speed_kph=30.0))
        detector.update_from_sample(make_sample(400, speed_kph=0.0))
        assert pool.waitForDone(5000)

        assert detector.state == TripState.IDLE
