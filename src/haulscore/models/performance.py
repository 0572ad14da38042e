"""Score, grade, and notification value types produced by the scoring engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class Grade(Enum):
    """Letter grades, best first. ``rank`` orders by quality (1 = best)."""

    A_PLUS = "A+"
    A = "A"
    B_PLUS = "B+"
    B = "B"
    C_PLUS = "C+"
    C = "C"
    D_PLUS = "D+"
    D = "D"
    F = "F"

    @property
    def rank(self) -> int:
        return _GRADE_ORDER.index(self) + 1

    @property
    def midpoint(self) -> float:
        """Representative score for charting a grade."""
        return _GRADE_MIDPOINTS[self]

    @classmethod
    def from_score(cls, score: float) -> Grade:
        """Convert a 0-100 score to its letter grade."""
        for threshold, grade in _GRADE_THRESHOLDS:
            if score >= threshold:
                return grade
        return cls.F

    @classmethod
    def parse(cls, text: Optional[str]) -> Optional[Grade]:
        """Look up a grade by its text; None for unknown values such as "N/A"."""
        try:
            return cls(text)
        except ValueError:
            return None

    def __str__(self) -> str:
        return self.value


_GRADE_ORDER = list(Grade)

_GRADE_THRESHOLDS = (
    (95.0, Grade.A_PLUS),
    (90.0, Grade.A),
    (85.0, Grade.B_PLUS),
    (80.0, Grade.B),
    (75.0, Grade.C_PLUS),
    (70.0, Grade.C),
    (65.0, Grade.D_PLUS),
    (60.0, Grade.D),
)

_GRADE_MIDPOINTS = {
    Grade.A_PLUS: 97.5,
    Grade.A: 92.5,
    Grade.B_PLUS: 87.5,
    Grade.B: 82.5,
    Grade.C_PLUS: 77.5,
    Grade.C: 72.5,
    Grade.D_PLUS: 67.5,
    Grade.D: 62.5,
    Grade.F: 50.0,
}


class TrendIndicator(Enum):
    """Direction of the overall score relative to its recent average."""

    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class NotificationType(Enum):
    PENALTY = "penalty"
    REWARD = "reward"
    NEUTRAL = "neutral"


class ColorIndicator(Enum):
    """Qualitative color class for a score."""

    GOOD = "Green"
    NEUTRAL = "Gray"
    POOR = "Red"

    @classmethod
    def for_score(cls, score: float) -> ColorIndicator:
        if score >= 80.0:
            return cls.GOOD
        if score >= 60.0:
            return cls.NEUTRAL
        return cls.POOR


@dataclass(frozen=True)
class Notification:
    """A single scoring event (penalty, reward, or informational)."""

    message: str
    point_change: float  # negative = penalty, positive = reward
    timestamp: float  # Unix timestamp of the sample that caused it
    category: str  # 'Smoothness', 'Safety', 'Damage'

    @property
    def type(self) -> NotificationType:
        if self.point_change < 0:
            return NotificationType.PENALTY
        if self.point_change > 0:
            return NotificationType.REWARD
        return NotificationType.NEUTRAL


@dataclass(frozen=True)
class PerformanceSnapshot:
    """
    Immutable copy of the current session metrics.

    A new instance is produced for every query so observers comparing by
    identity see each update. History buffers are tuples, never views of
    engine state.
    """

    smoothness_score: float = 100.0
    fuel_efficiency_mpg: float = 0.0  # Estimated from smoothness, not measured
    fuel_efficiency_score: float = 0.0
    speed_compliance_percent: float = 100.0
    speed_compliance_grade: Grade = Grade.A_PLUS
    safety_score: float = 100.0
    damage_free_streak_secs: float = 0.0
    damage_free_score: float = 0.0  # Streak-based, for display
    vehicle_condition_score: float = 100.0  # 100 - damage
    overall_score: float = 100.0
    overall_grade: Grade = Grade.A_PLUS
    trend: TrendIndicator = TrendIndicator.STABLE

    # Session statistics
    session_duration_minutes: float = 0.0
    session_distance_miles: float = 0.0
    session_average_speed: float = 0.0  # mph
    session_fuel_consumed: float = 0.0  # gallons

    # Rolling history (oldest first)
    smoothness_history: Tuple[float, ...] = ()
    speed_compliance_history: Tuple[float, ...] = ()
    safety_history: Tuple[float, ...] = ()
    overall_history: Tuple[float, ...] = ()

    @property
    def damage_free_streak_minutes(self) -> float:
        return self.damage_free_streak_secs / 60.0


@dataclass(frozen=True)
class ScoreComponent:
    """One dimension's contribution to the overall score."""

    name: str
    icon: str
    value: float
    contribution_percent: float
    description: str
    color: ColorIndicator


@dataclass(frozen=True)
class ScoreBreakdown:
    smoothness: ScoreComponent
    speed_compliance: ScoreComponent
    safety: ScoreComponent
    vehicle_condition: ScoreComponent

    @property
    def components(self) -> Tuple[ScoreComponent, ...]:
        return (self.smoothness, self.speed_compliance, self.safety, self.vehicle_condition)


@dataclass
class MetricTooltip:
    """Explanation of how a metric is calculated, for presentation layers."""

    metric_name: str
    icon: str
    current_value: float
    weight: float
    calculation_explanation: str
    current_penalties: str = ""
    current_bonuses: str = ""
    improvement_tips: str = ""
