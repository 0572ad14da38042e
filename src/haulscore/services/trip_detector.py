"""Automatic trip detection, accumulation, and hand-off to the trip store."""

from __future__ import annotations

import logging
import time
from typing import Optional

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal, Slot

from haulscore.config.settings import Settings
from haulscore.errors import PreconditionError, TripStoreError
from haulscore.models.telemetry import TelemetrySample, Vector3
from haulscore.models.trip import Trip, TripState, utc_from_timestamp
from haulscore.services.performance_calculator import PerformanceCalculator
from haulscore.services.trip_store import TripStore

logger = logging.getLogger(__name__)


class _SaveTripTask(QRunnable):
    """Fire-and-forget trip save; failures are only logged and signalled."""

    def __init__(self, detector: TripDetector, trip: Trip):
        super().__init__()
        self._detector = detector
        self._trip = trip

    def run(self) -> None:
        try:
            self._detector._save(self._trip)
        except PreconditionError as e:
            logger.error("Trip store not ready, trip not saved: %s", e)
            self._detector.trip_save_failed.emit(self._trip, str(e))


class TripDetector(QObject):
    """
    Detects trips from the telemetry stream and persists them when they end.

    State machine:
        IDLE ──(speed > moving threshold)──> ACTIVE
        ACTIVE ──(not moving for longer than the timeout)──> IDLE (save trip)
        ACTIVE ──(end_current_trip(), e.g. shutdown)──> IDLE (save trip)

    Timing uses sample timestamps, so replays behave exactly like live data.
    """

    # Signals
    trip_started = Signal(object)  # Trip
    trip_ended = Signal(object)  # Trip (finalized, possibly not yet saved)
    trip_saved = Signal(object)  # Trip (with id)
    trip_save_failed = Signal(object, str)  # Trip, error message
    trip_stats_updated = Signal(object)  # Trip (periodic updates)
    state_changed = Signal(str)  # TripState value

    # Displacements at or above this per update are position glitches
    MAX_POSITION_JUMP_MILES = 0.1

    def __init__(
        self,
        store: TripStore,
        calculator: PerformanceCalculator,
        settings: Optional[Settings] = None,
        thread_pool: Optional[QThreadPool] = None,
    ):
        super().__init__()
        self._store = store
        self._calculator = calculator
        self._settings = settings or Settings()
        self._pool = thread_pool or QThreadPool.globalInstance()

        self._state = TripState.IDLE
        self._trip: Optional[Trip] = None
        self._was_moving = False

        # Timing (sample timestamps)
        self._last_movement_ts = 0.0
        self._last_sample_ts: Optional[float] = None
        self._last_stats_emit_ts = 0.0

        # Accumulation anchors
        self._last_odometer_km = 0.0
        self._last_fuel = 0.0
        self._last_position = Vector3()

    @property
    def state(self) -> TripState:
        """Current trip state."""
        return self._state

    @property
    def current_trip(self) -> Optional[Trip]:
        """The active trip (None if idle)."""
        return self._trip

    @property
    def is_trip_active(self) -> bool:
        return self._trip is not None

    @Slot(object)
    def update_from_sample(self, sample: TelemetrySample) -> None:
        """
        Process one telemetry sample.

        Args:
            sample: Sample from the telemetry source
        """
        if not sample.connected:
            return

        now = sample.timestamp
        self._last_sample_ts = now
        moving = sample.speed_kph > self._settings.trip_moving_speed_kph

        if moving and not self._was_moving and self._trip is None:
            self._start_trip(sample)

        if self._trip is not None:
            self._accumulate(sample, moving)

            if moving:
                self._maybe_emit_stats(now)
            elif now - self._last_movement_ts > self._settings.trip_end_timeout_secs:
                logger.info(
                    "Trip end detected: stopped for %.1f minutes",
                    (now - self._last_movement_ts) / 60.0,
                )
                trip = self._finish_trip(now)
                self._submit_save(trip)

        if moving:
            self._last_movement_ts = now
        self._was_moving = moving

    def end_current_trip(self, now: Optional[float] = None) -> Optional[Trip]:
        """
        End the active trip immediately and save it (e.g. on shutdown).

        The save is synchronous. A failed save is logged; the unsaved trip is
        still returned so it can be exported or retried by the caller.

        Args:
            now: End timestamp (default: last sample timestamp, else current time)

        Returns:
            The completed trip, or None if no trip was active
        """
        if self._trip is None:
            return None

        if now is None:
            now = self._last_sample_ts if self._last_sample_ts is not None else time.time()

        trip = self._finish_trip(now)
        self._save(trip)
        return trip

    def reset(self) -> None:
        """Drop any active trip without saving."""
        self._trip = None
        self._was_moving = False
        self._transition_to(TripState.IDLE)

    # ---------- Internals ----------

    def _start_trip(self, sample: TelemetrySample) -> None:
        """Start a new trip."""
        self._trip = Trip(start_time=utc_from_timestamp(sample.timestamp))
        self._last_odometer_km = sample.odometer_km
        self._last_fuel = sample.fuel_amount
        self._last_position = sample.position
        self._last_stats_emit_ts = sample.timestamp

        logger.info("Trip started at %s", self._trip.start_time.isoformat())
        self._transition_to(TripState.ACTIVE)
        self.trip_started.emit(self._trip)

    def _accumulate(self, sample: TelemetrySample, moving: bool) -> None:
        """Add distance and fuel since the previous sample."""
        trip = self._trip

        # Odometer when present (a stalled reading adds nothing); position only without one
        if sample.odometer_km > 0:
            if sample.odometer_km > self._last_odometer_km:
                if self._last_odometer_km > 0:
                    trip.add_odometer_distance(sample.odometer_km - self._last_odometer_km)
                self._last_odometer_km = sample.odometer_km
        elif moving:
            trip.add_displacement(
                self._last_position.distance_to(sample.position),
                self.MAX_POSITION_JUMP_MILES,
            )
        self._last_position = sample.position

        if 0 < sample.fuel_amount < self._last_fuel:
            trip.add_fuel_used(self._last_fuel - sample.fuel_amount)
        self._last_fuel = sample.fuel_amount

    def _finish_trip(self, now: float) -> Trip:
        """Finalize the active trip and return to IDLE."""
        trip = self._trip
        trip.finalize(utc_from_timestamp(now), self._calculator.current_snapshot())

        self._trip = None
        self._transition_to(TripState.IDLE)
        logger.info(
            "Trip ended: %.1f min, %.2f mi, grade %s",
            trip.duration_minutes,
            trip.distance_miles,
            trip.overall_grade,
        )
        self.trip_ended.emit(trip)
        return trip

    def _submit_save(self, trip: Trip) -> None:
        if self._settings.background_saves:
            self._pool.start(_SaveTripTask(self, trip))
        else:
            self._save(trip)

    def _save(self, trip: Trip) -> bool:
        """Single best-effort write; never retried."""
        try:
            self._store.save_trip(trip)
        except TripStoreError as e:
            logger.error("Failed to save trip started %s: %s", trip.start_time.isoformat(), e)
            self.trip_save_failed.emit(trip, str(e))
            return False
        self.trip_saved.emit(trip)
        return True

    def _transition_to(self, new_state: TripState) -> None:
        """Transition to a new state."""
        if new_state != self._state:
            self._state = new_state
            self.state_changed.emit(new_state.value)

    def _maybe_emit_stats(self, now: float) -> None:
        """Emit stats update if interval has passed."""
        if self._trip and (now - self._last_stats_emit_ts) >= self._settings.trip_stats_interval_sec:
            self.trip_stats_updated.emit(self._trip)
            self._last_stats_emit_ts = now
