"""Trip records and aggregate trip statistics."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from haulscore.models.performance import Grade, PerformanceSnapshot
from haulscore.utils.geo import km_to_miles, liters_to_gallons, meters_to_miles


class TripState(Enum):
    """Trip state machine states."""

    IDLE = "idle"  # No active trip
    ACTIVE = "active"  # Trip in progress


def utc_from_timestamp(ts: float) -> datetime:
    """Convert a Unix timestamp to an aware UTC datetime."""
    return datetime.fromtimestamp(ts, tz=timezone.utc)


@dataclass
class Trip:
    """
    One detected driving session.

    Built incrementally while active, finalized with the scoring engine's
    snapshot when the trip ends. ``id`` is assigned by the trip store.
    """

    start_time: datetime
    end_time: Optional[datetime] = None
    id: Optional[int] = None

    duration_minutes: float = 0.0
    distance_miles: float = 0.0
    average_speed: float = 0.0  # mph
    fuel_consumed: float = 0.0  # gallons

    # Scores captured at trip end
    smoothness_score: float = 0.0
    fuel_efficiency_mpg: float = 0.0
    speed_compliance_percent: float = 0.0
    safety_score: float = 0.0
    overall_grade: str = "N/A"

    @property
    def grade(self) -> Optional[Grade]:
        return Grade.parse(self.overall_grade)

    @property
    def is_finalized(self) -> bool:
        return self.end_time is not None

    def add_odometer_distance(self, delta_km: float) -> float:
        """Add an odometer delta (km). Returns the miles added."""
        if delta_km <= 0:
            return 0.0
        miles = km_to_miles(delta_km)
        self.distance_miles += miles
        return miles

    def add_displacement(self, meters: float, max_jump_miles: float = 0.1) -> float:
        """
        Add a straight-line displacement between two positions.

        Displacements of ``max_jump_miles`` or more in one update are treated
        as teleports/glitches and ignored. Returns the miles added.
        """
        miles = meters_to_miles(meters)
        if 0 < miles < max_jump_miles:
            self.distance_miles += miles
            return miles
        return 0.0

    def add_fuel_used(self, liters: float) -> None:
        if liters > 0:
            self.fuel_consumed += liters_to_gallons(liters)

    def finalize(self, end_time: datetime, snapshot: PerformanceSnapshot) -> None:
        """Stamp the end time and capture the final scores."""
        if end_time < self.start_time:
            end_time = self.start_time
        self.end_time = end_time
        self.duration_minutes = (end_time - self.start_time).total_seconds() / 60.0

        self.smoothness_score = snapshot.smoothness_score
        self.fuel_efficiency_mpg = snapshot.fuel_efficiency_mpg
        self.speed_compliance_percent = snapshot.speed_compliance_percent
        self.safety_score = snapshot.safety_score
        self.overall_grade = snapshot.overall_grade.value

        if self.duration_minutes > 0:
            self.average_speed = self.distance_miles / self.duration_minutes * 60.0


@dataclass
class TripStatistics:
    """Aggregates over all persisted trips. Zero-valued when there are none."""

    total_trips: int = 0
    total_distance_miles: float = 0.0
    total_duration_minutes: float = 0.0
    total_fuel_consumed: float = 0.0

    average_smoothness_score: float = 0.0
    average_fuel_efficiency_mpg: float = 0.0
    average_speed_compliance_percent: float = 0.0
    average_safety_score: float = 0.0
    average_overall_score: float = 0.0

    best_grade: Optional[Grade] = None
    worst_grade: Optional[Grade] = None

    average_trip_distance: float = 0.0
    average_trip_duration: float = 0.0

    grade_counts: dict = field(default_factory=dict)

    @property
    def average_grade_score(self) -> float:
        """Mean of the grade midpoints over graded trips (0 when none are graded)."""
        graded = sum(self.grade_counts.values())
        if graded == 0:
            return 0.0
        return sum(grade.midpoint * count for grade, count in self.grade_counts.items()) / graded
