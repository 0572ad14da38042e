"""Telemetry sample contract consumed by the scoring engine and trip detector."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field, fields
from typing import Any, Mapping


@dataclass(frozen=True)
class Vector3:
    """Position in world coordinates (meters)."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def distance_to(self, other: Vector3) -> float:
        """Straight-line 3-D distance to another point."""
        return math.sqrt(
            (self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2
        )

    @classmethod
    def from_value(cls, value: Any) -> Vector3:
        """Build from a mapping ({x, y, z}) or a 3-sequence; anything else (including text) is the origin."""
        if isinstance(value, Vector3):
            return value
        try:
            if isinstance(value, Mapping):
                return cls(
                    float(value.get("x", 0.0)),
                    float(value.get("y", 0.0)),
                    float(value.get("z", 0.0)),
                )
            if isinstance(value, (str, bytes)):
                return cls()
            x, y, z = value
            return cls(float(x), float(y), float(z))
        except (TypeError, ValueError):
            return cls()


@dataclass(frozen=True)
class TelemetrySample:
    """
    One instant of vehicle state.

    Speeds are km/h, distances km, fuel in liters, angles in radians.
    A speed limit of 0 means "unknown".
    """

    timestamp: float = field(default_factory=time.time)  # Unix timestamp
    connected: bool = False
    paused: bool = False

    # Motion
    position: Vector3 = field(default_factory=Vector3)
    heading: float = 0.0
    pitch: float = 0.0
    roll: float = 0.0
    speed_kph: float = 0.0

    # Vehicle
    fuel_amount: float = 0.0
    fuel_capacity: float = 0.0
    damage_percent: float = 0.0
    odometer_km: float = 0.0
    speed_limit_kph: float = 0.0

    # Control inputs
    blinker_left: bool = False
    blinker_right: bool = False
    high_beam: bool = False
    park_brake: bool = False
    engine_brake: bool = False
    cruise_control: bool = False
    retarder_level: int = 0
    engine_rpm: float = 0.0
    engine_rpm_max: float = 0.0
    brake_temperature_c: float = 0.0

    @property
    def is_valid(self) -> bool:
        """True if the sample should be scored (connected and not paused)."""
        return self.connected and not self.paused

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TelemetrySample:
        """
        Build a sample from a loosely-shaped record (e.g. one line of a recording).

        Unknown keys are ignored; missing or malformed values fall back to defaults.
        """
        values = {}
        defaults = cls()
        for f in fields(cls):
            if f.name not in data:
                continue
            raw = data[f.name]
            default = getattr(defaults, f.name)
            if f.name == "position":
                values["position"] = Vector3.from_value(raw)
            elif f.name == "timestamp":
                values["timestamp"] = _coerce(raw, float, default)
            elif isinstance(default, bool):
                values[f.name] = _coerce_bool(raw, default)
            elif isinstance(default, int):
                values[f.name] = _coerce(raw, lambda v: int(float(v)), default)
            else:
                values[f.name] = _coerce(raw, float, default)
        return cls(**values)


def _coerce(raw: Any, convert, default):
    try:
        value = convert(raw)
    except (TypeError, ValueError):
        return default
    if isinstance(value, float) and not math.isfinite(value):
        return default
    return value


def _coerce_bool(raw: Any, default: bool) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return raw != 0
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off", ""):
            return False
    return default
