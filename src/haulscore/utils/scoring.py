"""Score clamping, descriptions, and streak scoring shared by the engine and reports."""

from __future__ import annotations


def clamp_score(score: float) -> float:
    """Clamp a score to the 0-100 range."""
    return max(0.0, min(100.0, score))


def damage_streak_score(streak_minutes: float) -> float:
    """
    Map a damage-free streak to a 0-100 display score.

    0-5 min ramps to 25, 5-15 to 50, 15-30 to 75, 30-60 to 100.
    """
    if streak_minutes >= 60.0:
        return 100.0
    if streak_minutes >= 30.0:
        return 75.0 + (streak_minutes - 30.0) / 30.0 * 25.0
    if streak_minutes >= 15.0:
        return 50.0 + (streak_minutes - 15.0) / 15.0 * 25.0
    if streak_minutes >= 5.0:
        return 25.0 + (streak_minutes - 5.0) / 10.0 * 25.0
    return max(0.0, streak_minutes) / 5.0 * 25.0


def smoothness_description(score: float) -> str:
    if score >= 90.0:
        return "Excellent smooth driving"
    if score >= 75.0:
        return "Good acceleration and braking"
    if score >= 60.0:
        return "Some harsh inputs detected"
    return "Frequent harsh acceleration/braking"


def speed_compliance_description(score: float) -> str:
    if score >= 95.0:
        return "Excellent speed limit adherence"
    if score >= 80.0:
        return "Good speed control"
    if score >= 60.0:
        return "Occasional speeding detected"
    return "Frequent speed limit violations"


def safety_description(score: float) -> str:
    if score >= 90.0:
        return "Excellent safety practices"
    if score >= 75.0:
        return "Good safety awareness"
    if score >= 60.0:
        return "Some safety issues detected"
    return "Multiple safety violations"


def vehicle_condition_description(damage_percent: float, streak_minutes: float) -> str:
    """Describe vehicle condition from damage and the current damage-free streak."""
    if damage_percent <= 5.0:
        if streak_minutes >= 30.0:
            return f"Excellent condition ({damage_percent:.1f}% damage, {streak_minutes:.0f} min streak)"
        return f"Excellent condition ({damage_percent:.1f}% damage)"
    if damage_percent <= 15.0:
        if streak_minutes >= 15.0:
            return f"Good condition ({damage_percent:.1f}% damage, {streak_minutes:.0f} min streak)"
        return f"Minor damage ({damage_percent:.1f}%)"
    if damage_percent <= 30.0:
        return f"Moderate damage ({damage_percent:.1f}%)"
    if damage_percent <= 50.0:
        return f"Significant damage ({damage_percent:.1f}%)"
    return f"Severe damage ({damage_percent:.1f}%)"


def format_duration(secs: float) -> str:
    """Format seconds as human-readable duration."""
    mins = int(secs // 60)
    if mins < 60:
        return f"{mins}m"
    hours = mins // 60
    mins = mins % 60
    if hours < 24:
        return f"{hours}h {mins}m"
    days = hours // 24
    hours = hours % 24
    return f"{days}d {hours}h"
