# HaulScore - Data models
from haulscore.models.telemetry import TelemetrySample, Vector3
from haulscore.models.performance import (
    ColorIndicator,
    Grade,
    MetricTooltip,
    Notification,
    NotificationType,
    PerformanceSnapshot,
    ScoreBreakdown,
    ScoreComponent,
    TrendIndicator,
)
from haulscore.models.trip import Trip, TripState, TripStatistics

__all__ = [
    "TelemetrySample",
    "Vector3",
    "ColorIndicator",
    "Grade",
    "MetricTooltip",
    "Notification",
    "NotificationType",
    "PerformanceSnapshot",
    "ScoreBreakdown",
    "ScoreComponent",
    "TrendIndicator",
    "Trip",
    "TripState",
    "TripStatistics",
]
