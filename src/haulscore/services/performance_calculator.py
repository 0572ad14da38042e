"""Real-time driving performance scoring from telemetry samples."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional

from PySide6.QtCore import QObject, Signal, Slot

from haulscore.models.performance import (
    ColorIndicator,
    Grade,
    MetricTooltip,
    Notification,
    PerformanceSnapshot,
    ScoreBreakdown,
    ScoreComponent,
    TrendIndicator,
)
from haulscore.models.telemetry import TelemetrySample
from haulscore.utils.geo import (
    angle_delta,
    km_to_miles,
    kph_to_mph,
    liters_to_gallons,
    rate_deg_per_sec,
)
from haulscore.utils.scoring import (
    clamp_score,
    damage_streak_score,
    safety_description,
    smoothness_description,
    speed_compliance_description,
    vehicle_condition_description,
)

logger = logging.getLogger(__name__)


@dataclass
class _ScoreState:
    """Engine-private mutable state. Replaced wholesale on reset."""

    # Previous sample (None timestamp = next valid sample only anchors)
    previous_timestamp: Optional[float] = None
    previous_speed_kph: float = 0.0
    previous_heading: float = 0.0
    previous_pitch: float = 0.0
    previous_roll: float = 0.0

    # Session anchors
    session_start_time: float = 0.0
    session_start_odometer_km: float = 0.0
    session_start_fuel: float = 0.0

    # Running scores
    smoothness: float = 100.0
    safety: float = 100.0
    time_compliant: float = 0.0
    total_time: float = 0.0
    last_speed_limit_mph: float = 55.0

    # Damage tracking
    last_damage_percent: float = 0.0
    damage_free_start_time: float = 0.0

    # Notification cooldowns (seconds remaining)
    high_beam_cooldown: float = 0.0
    engine_brake_cooldown: float = 0.0
    over_rev_cooldown: float = 0.0
    brake_temp_cooldown: float = 0.0

    # Derived values published in snapshots
    fuel_efficiency_mpg: float = 0.0
    fuel_efficiency_score: float = 0.0
    speed_compliance_percent: float = 100.0
    damage_free_streak_secs: float = 0.0
    damage_free_score: float = 0.0
    overall_score: float = 100.0
    trend: TrendIndicator = TrendIndicator.STABLE
    session_duration_minutes: float = 0.0
    session_distance_miles: float = 0.0
    session_average_speed: float = 0.0
    session_fuel_consumed: float = 0.0

    smoothness_history: Deque[float] = field(default_factory=deque)
    speed_compliance_history: Deque[float] = field(default_factory=deque)
    safety_history: Deque[float] = field(default_factory=deque)
    overall_history: Deque[float] = field(default_factory=deque)


class PerformanceCalculator(QObject):
    """
    Calculates driving performance metrics from a stream of telemetry samples.

    Dimensions (25% weight each in the overall score):
        smoothness        - acceleration, braking, steering, pitch/roll
        speed compliance  - share of time at or below the speed limit
        safety            - signals, brakes, lights, RPM, brake temperature
        vehicle condition - 100 minus current damage

    ``update_from_sample`` and the query methods may run on different threads;
    all state access goes through one lock and queries return copies.
    Notifications are emitted after the lock is released.
    """

    # Signals
    notification_raised = Signal(object)  # Notification
    metrics_updated = Signal(object)  # PerformanceSnapshot

    # Sample validity
    MAX_SAMPLE_GAP_SECS = 10.0  # larger gaps re-anchor instead of scoring

    # History (one minute at ~10 Hz)
    HISTORY_SIZE = 600
    TREND_MIN_SAMPLES = 10
    TREND_DEAD_BAND = 2.0

    NOTIFICATION_BACKLOG = 100
    COMPONENT_WEIGHT = 25.0

    # Smoothness thresholds (mph/s, deg/s)
    HARSH_ACCEL_MPH_S = 12.0
    MODERATE_ACCEL_MPH_S = 8.0
    HARSH_BRAKE_MPH_S = 18.0
    HARD_BRAKE_MPH_S = 12.0
    SWERVE_MIN_SPEED_MPH = 10.0
    SHARP_SWERVE_DEG_S = 3.5
    MODERATE_SWERVE_DEG_S = 2.5
    GENTLE_TURN_DEG_S = 1.5
    ROUGH_MIN_SPEED_MPH = 5.0
    ROUGH_PITCH_ROLL_DEG_S = 15.0

    # Fuel estimate range (MPG) and baseline
    MPG_FLOOR = 4.0
    MPG_CEILING = 8.0
    MPG_BASELINE = 6.0

    # Speed limit inference (mph)
    HIGHWAY_SPEED_MPH = 50.0
    HIGHWAY_LIMIT_MPH = 65.0
    DEFAULT_LIMIT_MPH = 55.0

    # Safety thresholds
    TURN_MIN_SPEED_MPH = 5.0
    TURN_RATE_DEG_S = 15.0
    PARK_BRAKE_MIN_SPEED_MPH = 1.0
    URBAN_SPEED_MPH = 45.0
    LOW_LIMIT_MPH = 55.0
    DESCENT_PITCH_RAD = -0.05
    ENGINE_BRAKE_MIN_SPEED_MPH = 20.0
    OVER_REV_PERCENT = 90.0
    BRAKE_HOT_C = 200.0
    BRAKE_OVERHEAT_C = 300.0

    HIGH_BEAM_COOLDOWN_SECS = 5.0
    ENGINE_BRAKE_COOLDOWN_SECS = 10.0
    OVER_REV_COOLDOWN_SECS = 3.0
    BRAKE_TEMP_COOLDOWN_SECS = 5.0

    DAMAGE_EPSILON = 0.001

    def __init__(self):
        super().__init__()
        self._lock = threading.Lock()
        self._state = self._new_state(time.time())
        self._pending: List[Notification] = []
        self._recent: Deque[Notification] = deque(maxlen=self.NOTIFICATION_BACKLOG)

    # ---------- Public API ----------

    @Slot(object)
    def update_from_sample(self, sample: TelemetrySample) -> None:
        """
        Advance every score by the time elapsed since the previous valid sample.

        Disconnected or paused samples are ignored. Non-positive or oversized
        time deltas re-anchor the previous-sample state without scoring.
        """
        if not sample.is_valid:
            return

        with self._lock:
            scored = self._update_locked(sample)
            notifications = self._pending
            self._pending = []
            snapshot = self._snapshot_locked() if scored else None

        for notification in notifications:
            self.notification_raised.emit(notification)
        if snapshot is not None:
            self.metrics_updated.emit(snapshot)

    def current_snapshot(self) -> PerformanceSnapshot:
        """Return an independent copy of the current metrics."""
        with self._lock:
            return self._snapshot_locked()

    def score_breakdown(self) -> ScoreBreakdown:
        """Return a freshly computed per-dimension breakdown."""
        with self._lock:
            s = self._state
            condition = self._vehicle_condition(s)
            streak_minutes = s.damage_free_streak_secs / 60.0
            return ScoreBreakdown(
                smoothness=self._component(
                    "Smoothness", "🎯", s.smoothness, smoothness_description(s.smoothness)
                ),
                speed_compliance=self._component(
                    "Speed Compliance",
                    "🚦",
                    s.speed_compliance_percent,
                    speed_compliance_description(s.speed_compliance_percent),
                ),
                safety=self._component("Safety", "🛡️", s.safety, safety_description(s.safety)),
                vehicle_condition=self._component(
                    "Vehicle Condition",
                    "🔧",
                    condition,
                    vehicle_condition_description(s.last_damage_percent, streak_minutes),
                ),
            )

    def reset_session(self) -> None:
        """Reset all scores and session statistics to their starting values."""
        with self._lock:
            self._state = self._new_state(time.time())
            self._pending = []
            self._recent.clear()
        logger.info("Performance session reset")

    def recent_notifications(self, limit: Optional[int] = None) -> List[Notification]:
        """Most recent notifications, newest first (bounded backlog)."""
        with self._lock:
            items = list(self._recent)
        return items if limit is None else items[:limit]

    # ---------- Tooltips ----------

    def smoothness_tooltip(self) -> MetricTooltip:
        with self._lock:
            score = self._state.smoothness

        if score >= 90.0:
            penalties = "None - Excellent smooth driving!"
        elif score >= 75.0:
            penalties = "Minor penalties from occasional harsh inputs"
        elif score >= 60.0:
            penalties = "Moderate penalties from frequent harsh acceleration/braking"
        else:
            penalties = "Significant penalties from very harsh driving inputs"

        if score >= 90.0:
            bonuses = "Earning bonuses for smooth, steady driving"
        elif score >= 75.0:
            bonuses = "Some bonuses for smooth sections"
        else:
            bonuses = "Limited bonuses - focus on smoother inputs"

        return MetricTooltip(
            metric_name="Smoothness Score",
            icon="🎯",
            current_value=score,
            weight=self.COMPONENT_WEIGHT,
            calculation_explanation=(
                "Measures driving smoothness based on acceleration, braking, and steering patterns.\n\n"
                "• Starts at 100% and adjusts based on driving inputs\n"
                f"• Harsh acceleration (>{self.HARSH_ACCEL_MPH_S:.0f} MPH/sec): -1.5 pts\n"
                f"• Moderate acceleration (>{self.MODERATE_ACCEL_MPH_S:.0f} MPH/sec): -0.4 pts\n"
                f"• Harsh braking (>{self.HARSH_BRAKE_MPH_S:.0f} MPH/sec): -3.0 pts\n"
                f"• Hard braking (>{self.HARD_BRAKE_MPH_S:.0f} MPH/sec): -1.0 pts\n"
                f"• Sharp swerving (>{self.SHARP_SWERVE_DEG_S}°/sec): -1.5 pts\n"
                "• Smooth driving: +0.2-0.4 pts/sec"
            ),
            current_penalties=penalties,
            current_bonuses=bonuses,
            improvement_tips=(
                "• Accelerate gradually and smoothly\n"
                "• Anticipate stops and brake early\n"
                "• Avoid sudden steering inputs\n"
                "• Maintain steady speed when possible\n"
                "• Use cruise control on highways"
            ),
        )

    def speed_compliance_tooltip(self) -> MetricTooltip:
        with self._lock:
            percent = self._state.speed_compliance_percent
            limit = self._state.last_speed_limit_mph

        if percent >= 95.0:
            penalties = "None - Excellent speed limit adherence!"
        elif percent >= 80.0:
            penalties = "Minor time spent over speed limit"
        elif percent >= 60.0:
            penalties = "Frequent speeding detected"
        else:
            penalties = "Significant time spent over speed limit"

        return MetricTooltip(
            metric_name="Speed Compliance",
            icon="🚦",
            current_value=percent,
            weight=self.COMPONENT_WEIGHT,
            calculation_explanation=(
                "Tracks adherence to speed limits over time.\n\n"
                f"• Current speed limit: {limit:.0f} MPH\n"
                "• Calculates percentage of time at or below limit\n"
                f"• Highway limit: {self.HIGHWAY_LIMIT_MPH:.0f} MPH\n"
                f"• Default limit: {self.DEFAULT_LIMIT_MPH:.0f} MPH\n"
                "• Uses posted limits when available"
            ),
            current_penalties=penalties,
            current_bonuses=(
                "Maintaining excellent compliance"
                if percent >= 95.0
                else "Stay at or below speed limit to improve"
            ),
            improvement_tips=(
                "• Watch for speed limit signs\n"
                "• Use cruise control to maintain speed\n"
                "• Slow down in urban areas\n"
                "• Check speedometer regularly\n"
                "• Allow extra time for trips"
            ),
        )

    def safety_tooltip(self) -> MetricTooltip:
        with self._lock:
            score = self._state.safety

        if score >= 90.0:
            penalties = "None - Excellent safety practices!"
            bonuses = "Proper use of signals, lights, and brakes"
        elif score >= 75.0:
            penalties = "Minor safety issues detected"
            bonuses = "Some good safety practices observed"
        elif score >= 60.0:
            penalties = "Multiple safety violations"
            bonuses = "Focus on using safety equipment properly"
        else:
            penalties = "Significant safety concerns detected"
            bonuses = "Focus on using safety equipment properly"

        return MetricTooltip(
            metric_name="Safety Score",
            icon="🛡️",
            current_value=score,
            weight=self.COMPONENT_WEIGHT,
            calculation_explanation=(
                "Monitors proper use of safety equipment and practices.\n\n"
                "• Starts at 100% and adjusts based on behavior\n"
                "• Turn without blinker: -2.0 pts\n"
                "• Parking brake while moving: -5.0 pts/sec\n"
                "• Inappropriate high beams: -0.5 pts/sec\n"
                f"• Over-revving engine (>{self.OVER_REV_PERCENT:.0f}% RPM): -1.0 pts/sec\n"
                f"• Hot brakes (>{self.BRAKE_HOT_C:.0f}°C): -1.0 to -2.0 pts/sec\n"
                "• Proper engine brake use: +0.3 pts/sec"
            ),
            current_penalties=penalties,
            current_bonuses=bonuses,
            improvement_tips=(
                "• Always use turn signals before turning\n"
                "• Release parking brake before driving\n"
                "• Use low beams in urban areas\n"
                "• Shift gears to avoid over-revving\n"
                "• Use engine brake on downhills\n"
                "• Avoid riding the brakes"
            ),
        )

    def overall_tooltip(self) -> MetricTooltip:
        with self._lock:
            s = self._state
            overall = s.overall_score
            smoothness = s.smoothness
            compliance = s.speed_compliance_percent
            safety = s.safety
            condition = self._vehicle_condition(s)
            streak_minutes = s.damage_free_streak_secs / 60.0

        return MetricTooltip(
            metric_name="Overall Performance",
            icon="✨",
            current_value=overall,
            weight=100.0,
            calculation_explanation=(
                "Weighted average of all performance metrics.\n\n"
                f"• Smoothness: {smoothness:.1f}% (25% weight)\n"
                f"• Speed Compliance: {compliance:.1f}% (25% weight)\n"
                f"• Safety: {safety:.1f}% (25% weight)\n"
                f"• Vehicle Condition: {condition:.1f}% (25% weight, "
                f"{streak_minutes:.0f} min damage-free)\n\n"
                "Grade Scale:\n"
                "A+ (95-100), A (90-94), B+ (85-89), B (80-84)\n"
                "C+ (75-79), C (70-74), D+ (65-69), D (60-64), F (<60)"
            ),
            current_penalties="See individual metrics for details",
            current_bonuses="See individual metrics for details",
            improvement_tips=(
                "• Focus on your lowest-scoring metric\n"
                "• Drive smoothly and predictably\n"
                "• Follow speed limits consistently\n"
                "• Use all safety equipment properly\n"
                "• Avoid collisions and damage"
            ),
        )

    # ---------- Update pipeline ----------

    def _new_state(self, now: float) -> _ScoreState:
        return _ScoreState(
            session_start_time=now,
            damage_free_start_time=now,
            smoothness_history=deque(maxlen=self.HISTORY_SIZE),
            speed_compliance_history=deque(maxlen=self.HISTORY_SIZE),
            safety_history=deque(maxlen=self.HISTORY_SIZE),
            overall_history=deque(maxlen=self.HISTORY_SIZE),
        )

    def _update_locked(self, sample: TelemetrySample) -> bool:
        """Apply one sample. Returns True if scores were advanced."""
        s = self._state

        if s.previous_timestamp is None:
            self._anchor_session(sample)
            return False

        dt = sample.timestamp - s.previous_timestamp
        if dt <= 0 or dt > self.MAX_SAMPLE_GAP_SECS:
            logger.debug("Skipping sample with time delta %.3fs", dt)
            self._anchor_motion(sample)
            return False

        self._update_smoothness(sample, dt)
        self._update_fuel_efficiency(sample)
        self._update_speed_compliance(sample, dt)
        self._update_safety(sample, dt)
        self._update_damage_streak(sample)
        self._update_session_statistics(sample)
        self._update_overall()

        self._anchor_motion(sample)
        return True

    def _anchor_session(self, sample: TelemetrySample) -> None:
        s = self._state
        self._anchor_motion(sample)
        s.session_start_time = sample.timestamp
        s.session_start_odometer_km = sample.odometer_km
        s.session_start_fuel = sample.fuel_amount
        s.last_damage_percent = sample.damage_percent
        s.damage_free_start_time = sample.timestamp

    def _anchor_motion(self, sample: TelemetrySample) -> None:
        s = self._state
        s.previous_timestamp = sample.timestamp
        s.previous_speed_kph = sample.speed_kph
        s.previous_heading = sample.heading
        s.previous_pitch = sample.pitch
        s.previous_roll = sample.roll

    def _notify(self, message: str, point_change: float, category: str, ts: float) -> None:
        notification = Notification(
            message=message, point_change=point_change, timestamp=ts, category=category
        )
        self._pending.append(notification)
        self._recent.appendleft(notification)

    def _update_smoothness(self, sample: TelemetrySample, dt: float) -> None:
        s = self._state
        ts = sample.timestamp
        speed_mph = kph_to_mph(sample.speed_kph)
        previous_mph = kph_to_mph(s.previous_speed_kph)
        rate_mph_s = abs(speed_mph - previous_mph) / dt

        if speed_mph > previous_mph:
            if rate_mph_s > self.HARSH_ACCEL_MPH_S:
                s.smoothness -= 1.5
                self._notify("Harsh acceleration -1.5 pts", -1.5, "Smoothness", ts)
            elif rate_mph_s > self.MODERATE_ACCEL_MPH_S:
                s.smoothness -= 0.4
                self._notify("Moderate acceleration -0.4 pts", -0.4, "Smoothness", ts)
            else:
                reward = 0.2 * dt
                s.smoothness += reward
                if reward > 0.1:
                    self._notify(f"Smooth acceleration +{reward:.1f} pts", reward, "Smoothness", ts)
        elif speed_mph < previous_mph:
            if rate_mph_s > self.HARSH_BRAKE_MPH_S:
                s.smoothness -= 3.0
                self._notify("Harsh braking -3.0 pts", -3.0, "Smoothness", ts)
            elif rate_mph_s > self.HARD_BRAKE_MPH_S:
                s.smoothness -= 1.0
                self._notify("Hard braking -1.0 pts", -1.0, "Smoothness", ts)
            else:
                reward = 0.2 * dt
                s.smoothness += reward
                if reward > 0.1:
                    self._notify(f"Smooth braking +{reward:.1f} pts", reward, "Smoothness", ts)
        else:
            # Steady speed
            s.smoothness += 0.4 * dt

        if speed_mph > self.SWERVE_MIN_SPEED_MPH:
            heading_rate = rate_deg_per_sec(angle_delta(sample.heading, s.previous_heading), dt)
            if heading_rate > self.SHARP_SWERVE_DEG_S:
                s.smoothness -= 1.5
                self._notify("Sharp swerve -1.5 pts", -1.5, "Smoothness", ts)
            elif heading_rate > self.MODERATE_SWERVE_DEG_S:
                s.smoothness -= 0.8
                self._notify("Moderate swerve -0.8 pts", -0.8, "Smoothness", ts)
            elif heading_rate > self.GENTLE_TURN_DEG_S:
                s.smoothness -= 0.2

        if speed_mph > self.ROUGH_MIN_SPEED_MPH:
            pitch_rate = rate_deg_per_sec(sample.pitch - s.previous_pitch, dt)
            roll_rate = rate_deg_per_sec(sample.roll - s.previous_roll, dt)
            if pitch_rate > self.ROUGH_PITCH_ROLL_DEG_S or roll_rate > self.ROUGH_PITCH_ROLL_DEG_S:
                s.smoothness -= 0.8

        s.smoothness = clamp_score(s.smoothness)

    def _update_fuel_efficiency(self, sample: TelemetrySample) -> None:
        # No reliable consumption telemetry: MPG is an estimate from smoothness.
        s = self._state
        s.session_distance_miles = max(0.0, km_to_miles(sample.odometer_km - s.session_start_odometer_km))
        s.session_fuel_consumed = liters_to_gallons(max(0.0, s.session_start_fuel - sample.fuel_amount))

        mpg = self.MPG_FLOOR + (s.smoothness / 100.0) * (self.MPG_CEILING - self.MPG_FLOOR)
        s.fuel_efficiency_mpg = mpg
        s.fuel_efficiency_score = mpg / self.MPG_BASELINE * 100.0

    def _speed_limit_mph(self, sample: TelemetrySample) -> float:
        if sample.speed_limit_kph > 0:
            return kph_to_mph(sample.speed_limit_kph)
        if kph_to_mph(sample.speed_kph) > self.HIGHWAY_SPEED_MPH:
            return self.HIGHWAY_LIMIT_MPH
        return self.DEFAULT_LIMIT_MPH

    def _update_speed_compliance(self, sample: TelemetrySample, dt: float) -> None:
        s = self._state
        limit = self._speed_limit_mph(sample)
        s.last_speed_limit_mph = limit

        if kph_to_mph(sample.speed_kph) <= limit:
            s.time_compliant += dt
        s.total_time += dt

        if s.total_time > 0:
            s.speed_compliance_percent = clamp_score(s.time_compliant / s.total_time * 100.0)

    def _update_safety(self, sample: TelemetrySample, dt: float) -> None:
        s = self._state
        ts = sample.timestamp
        speed_mph = kph_to_mph(sample.speed_kph)

        s.high_beam_cooldown = max(0.0, s.high_beam_cooldown - dt)
        s.engine_brake_cooldown = max(0.0, s.engine_brake_cooldown - dt)
        s.over_rev_cooldown = max(0.0, s.over_rev_cooldown - dt)
        s.brake_temp_cooldown = max(0.0, s.brake_temp_cooldown - dt)

        # Turning without the matching blinker
        if speed_mph > self.TURN_MIN_SPEED_MPH:
            heading_delta = angle_delta(sample.heading, s.previous_heading)
            if rate_deg_per_sec(heading_delta, dt) > self.TURN_RATE_DEG_S:
                turning_left = heading_delta < 0
                if (turning_left and not sample.blinker_left) or (
                    not turning_left and not sample.blinker_right
                ):
                    s.safety -= 2.0
                    self._notify("Turn without blinker -2.0 pts", -2.0, "Safety", ts)

        if sample.park_brake and speed_mph > self.PARK_BRAKE_MIN_SPEED_MPH:
            penalty = 5.0 * dt
            s.safety -= penalty
            if penalty > 0.5:
                self._notify(f"Parking brake engaged -{penalty:.1f} pts", -penalty, "Safety", ts)

        if sample.high_beam:
            limit = self._speed_limit_mph(sample)
            if speed_mph < self.URBAN_SPEED_MPH or limit < self.LOW_LIMIT_MPH:
                penalty = 0.5 * dt
                s.safety -= penalty
                if s.high_beam_cooldown <= 0:
                    self._notify("Inappropriate high beam use", -penalty, "Safety", ts)
                    s.high_beam_cooldown = self.HIGH_BEAM_COOLDOWN_SECS

        if sample.engine_brake or sample.retarder_level > 0:
            if sample.pitch < self.DESCENT_PITCH_RAD and speed_mph > self.ENGINE_BRAKE_MIN_SPEED_MPH:
                reward = 0.3 * dt
                s.safety += reward
                if s.engine_brake_cooldown <= 0:
                    self._notify(f"Good engine brake use +{reward:.1f} pts", reward, "Safety", ts)
                    s.engine_brake_cooldown = self.ENGINE_BRAKE_COOLDOWN_SECS

        if sample.engine_rpm_max > 0:
            rpm_percent = sample.engine_rpm / sample.engine_rpm_max * 100.0
            if rpm_percent > self.OVER_REV_PERCENT:
                penalty = 1.0 * dt
                s.safety -= penalty
                if s.over_rev_cooldown <= 0:
                    self._notify("Over-revving engine", -penalty, "Safety", ts)
                    s.over_rev_cooldown = self.OVER_REV_COOLDOWN_SECS

        if sample.brake_temperature_c > self.BRAKE_HOT_C:
            if sample.brake_temperature_c > self.BRAKE_OVERHEAT_C:
                penalty = 2.0 * dt
                message = f"Brakes overheating ({sample.brake_temperature_c:.0f}°C)"
            else:
                penalty = 1.0 * dt
                message = f"Brakes hot ({sample.brake_temperature_c:.0f}°C)"
            s.safety -= penalty
            if s.brake_temp_cooldown <= 0:
                self._notify(message, -penalty, "Safety", ts)
                s.brake_temp_cooldown = self.BRAKE_TEMP_COOLDOWN_SECS

        s.safety = clamp_score(s.safety)

    def _update_damage_streak(self, sample: TelemetrySample) -> None:
        s = self._state
        if sample.damage_percent > s.last_damage_percent + self.DAMAGE_EPSILON:
            previous_streak = s.damage_free_streak_secs
            s.damage_free_start_time = sample.timestamp
            s.damage_free_streak_secs = 0.0
            if previous_streak > 60.0:
                hours, rem = divmod(int(previous_streak), 3600)
                self._notify(
                    f"Damage! Streak reset ({hours:02d}:{rem // 60:02d})", 0.0, "Damage", sample.timestamp
                )
            else:
                self._notify("Vehicle damaged", 0.0, "Damage", sample.timestamp)
        else:
            s.damage_free_streak_secs = max(0.0, sample.timestamp - s.damage_free_start_time)

        s.last_damage_percent = sample.damage_percent

    def _update_session_statistics(self, sample: TelemetrySample) -> None:
        s = self._state
        s.session_duration_minutes = max(0.0, sample.timestamp - s.session_start_time) / 60.0
        if s.session_duration_minutes > 0:
            s.session_average_speed = s.session_distance_miles / s.session_duration_minutes * 60.0

    def _update_overall(self) -> None:
        s = self._state
        condition = self._vehicle_condition(s)
        s.damage_free_score = damage_streak_score(s.damage_free_streak_secs / 60.0)
        s.overall_score = clamp_score(
            (s.smoothness + s.speed_compliance_percent + s.safety + condition) * 0.25
        )

        # Bounded deques evict the oldest entry
        s.smoothness_history.append(s.smoothness)
        s.speed_compliance_history.append(s.speed_compliance_percent)
        s.safety_history.append(s.safety)
        s.overall_history.append(s.overall_score)

        if len(s.overall_history) > self.TREND_MIN_SAMPLES:
            average = sum(s.overall_history) / len(s.overall_history)
            difference = s.overall_score - average
            if difference > self.TREND_DEAD_BAND:
                s.trend = TrendIndicator.UP
            elif difference < -self.TREND_DEAD_BAND:
                s.trend = TrendIndicator.DOWN
            else:
                s.trend = TrendIndicator.STABLE
        else:
            s.trend = TrendIndicator.STABLE

    # ---------- Helpers ----------

    @staticmethod
    def _vehicle_condition(s: _ScoreState) -> float:
        return clamp_score(100.0 - s.last_damage_percent)

    def _component(self, name: str, icon: str, value: float, description: str) -> ScoreComponent:
        return ScoreComponent(
            name=name,
            icon=icon,
            value=value,
            contribution_percent=self.COMPONENT_WEIGHT,
            description=description,
            color=ColorIndicator.for_score(value),
        )

    def _snapshot_locked(self) -> PerformanceSnapshot:
        s = self._state
        return PerformanceSnapshot(
            smoothness_score=s.smoothness,
            fuel_efficiency_mpg=s.fuel_efficiency_mpg,
            fuel_efficiency_score=s.fuel_efficiency_score,
            speed_compliance_percent=s.speed_compliance_percent,
            speed_compliance_grade=Grade.from_score(s.speed_compliance_percent),
            safety_score=s.safety,
            damage_free_streak_secs=s.damage_free_streak_secs,
            damage_free_score=s.damage_free_score,
            vehicle_condition_score=self._vehicle_condition(s),
            overall_score=s.overall_score,
            overall_grade=Grade.from_score(s.overall_score),
            trend=s.trend,
            session_duration_minutes=s.session_duration_minutes,
            session_distance_miles=s.session_distance_miles,
            session_average_speed=s.session_average_speed,
            session_fuel_consumed=s.session_fuel_consumed,
            smoothness_history=tuple(s.smoothness_history),
            speed_compliance_history=tuple(s.speed_compliance_history),
            safety_history=tuple(s.safety_history),
            overall_history=tuple(s.overall_history),
        )
