"""Unit conversions and angle helpers for telemetry math."""

from __future__ import annotations

import math

# Conversion constants
KPH_TO_MPH = 0.621371
KM_TO_MILES = 0.621371
METERS_TO_MILES = 0.000621371
LITERS_TO_GALLONS = 0.264172
RAD_TO_DEG = 180.0 / math.pi


def kph_to_mph(kph: float) -> float:
    """Convert kilometers per hour to miles per hour."""
    return kph * KPH_TO_MPH


def km_to_miles(km: float) -> float:
    """Convert kilometers to miles."""
    return km * KM_TO_MILES


def meters_to_miles(meters: float) -> float:
    """Convert meters to miles."""
    return meters * METERS_TO_MILES


def liters_to_gallons(liters: float) -> float:
    """Convert liters to US gallons."""
    return liters * LITERS_TO_GALLONS


def angle_delta(current: float, previous: float) -> float:
    """
    Shortest signed angular difference between two headings.

    Args:
        current: Current angle (radians)
        previous: Previous angle (radians)

    Returns:
        Difference in radians, normalized to (-pi, pi]
    """
    diff = current - previous
    while diff > math.pi:
        diff -= 2 * math.pi
    while diff <= -math.pi:
        diff += 2 * math.pi
    return diff


def rate_deg_per_sec(delta_rad: float, dt_secs: float) -> float:
    """Convert an angular change over dt_secs into an absolute rate in degrees/second."""
    if dt_secs <= 0:
        return 0.0
    return abs(delta_rad) / dt_secs * RAD_TO_DEG
