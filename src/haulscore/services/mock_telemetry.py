"""Synthetic telemetry for development and demos without a running game."""

from __future__ import annotations

import math
import random
from typing import List, Optional

from PySide6.QtCore import QObject, Signal, Slot

from haulscore.models.telemetry import TelemetrySample, Vector3


class MockTelemetrySource(QObject):
    """
    Mock telemetry source for development/testing without the game plugin.

    Simulates a truck driving a loose loop with periodic stops, gentle heading
    drift, and steady fuel burn. Timestamps advance by a fixed step so output
    is reproducible for a given seed.
    """

    # Signals
    sample_ready = Signal(object)  # TelemetrySample
    connection_status = Signal(bool, str)  # connected, message

    FUEL_CAPACITY_L = 1100.0
    ENGINE_RPM_MAX = 2500.0
    LITERS_PER_KM = 0.3
    CYCLE_TICKS = 120  # one stop per cycle
    STOP_TICKS = 20

    def __init__(self, seed: Optional[int] = None, start_time: float = 0.0, dt: float = 1.0):
        super().__init__()
        self._running = False
        self._rng = random.Random(seed)
        self._dt = dt

        # Starting state
        self._timestamp = start_time
        self._x = 0.0
        self._z = 0.0
        self._heading = 0.0
        self._speed_kph = 0.0
        self._odometer_km = 12500.0
        self._fuel = self.FUEL_CAPACITY_L * 0.8

        self._tick = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @Slot()
    def start(self) -> None:
        """Start the mock source (updates come from mock_tick)."""
        self._running = True
        self.connection_status.emit(True, "Mock telemetry active")

    @Slot()
    def stop(self) -> None:
        """Stop the mock source."""
        self._running = False
        self.connection_status.emit(False, "Mock telemetry stopped")

    def mock_tick(self) -> Optional[TelemetrySample]:
        """
        Generate one mock sample and emit it.

        Returns:
            The generated sample, or None when the source is stopped
        """
        if not self._running:
            return None

        self._tick += 1
        self._timestamp += self._dt
        rng = self._rng

        # Speed ramps toward a target; stopped for part of every cycle
        stopped = self._tick % self.CYCLE_TICKS < self.STOP_TICKS
        target = 0.0 if stopped else rng.uniform(60.0, 95.0)
        step = 6.0 * self._dt
        if self._speed_kph < target:
            self._speed_kph = min(target, self._speed_kph + step)
        else:
            self._speed_kph = max(target, self._speed_kph - step * 1.5)
        if stopped and self._speed_kph < 1.0:
            self._speed_kph = 0.0

        distance_km = self._speed_kph * self._dt / 3600.0
        if self._speed_kph > 1.0:
            # Slowly vary heading (simulates curves)
            self._heading = _wrap(self._heading + rng.uniform(-0.01, 0.01))
            meters = distance_km * 1000.0
            self._x += meters * math.sin(self._heading)
            self._z += meters * math.cos(self._heading)

        self._odometer_km += distance_km
        self._fuel = max(0.0, self._fuel - distance_km * self.LITERS_PER_KM)

        rpm = 650.0 + self._speed_kph * 16.0 if self._speed_kph > 0 else 650.0
        limit = 80.0 if self._tick % (self.CYCLE_TICKS * 2) < self.CYCLE_TICKS else 90.0

        sample = TelemetrySample(
            timestamp=self._timestamp,
            connected=True,
            paused=False,
            position=Vector3(self._x, 0.0, self._z),
            heading=self._heading,
            pitch=rng.uniform(-0.01, 0.01),
            roll=rng.uniform(-0.005, 0.005),
            speed_kph=self._speed_kph,
            fuel_amount=self._fuel,
            fuel_capacity=self.FUEL_CAPACITY_L,
            damage_percent=0.0,
            odometer_km=self._odometer_km,
            speed_limit_kph=limit,
            blinker_left=False,
            blinker_right=False,
            high_beam=False,
            park_brake=stopped and self._speed_kph == 0.0,
            engine_brake=False,
            cruise_control=self._speed_kph > 70.0,
            retarder_level=0,
            engine_rpm=rpm,
            engine_rpm_max=self.ENGINE_RPM_MAX,
            brake_temperature_c=40.0,
        )
        self.sample_ready.emit(sample)
        return sample

    def generate(self, count: int) -> List[TelemetrySample]:
        """Start if needed and generate ``count`` samples."""
        if not self._running:
            self.start()
        samples = []
        for _ in range(count):
            sample = self.mock_tick()
            if sample is not None:
                samples.append(sample)
        return samples


def _wrap(angle: float) -> float:
    """Wrap an angle to [0, 2*pi)."""
    return angle % (2.0 * math.pi)
