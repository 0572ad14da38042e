"""Application settings with persistence."""

from __future__ import annotations

import json
import logging
import platform
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def get_data_dir() -> Path:
    """Get the data directory (not created)."""
    if platform.system() == "Linux":
        return Path.home() / ".local" / "share" / "haulscore"
    return Path.home() / ".haulscore"


@dataclass
class Settings:
    """
    Application settings with defaults and JSON persistence.

    Speeds are km/h to match the telemetry feed.
    """

    # Trip detection
    trip_moving_speed_kph: float = 0.5
    trip_end_timeout_min: float = 5.0
    trip_stats_interval_sec: float = 5.0
    background_saves: bool = True

    # Data management
    database_path: str = ""  # Empty = <data dir>/trips.db
    data_retention_days: int = 365

    # Logging
    log_level: str = "INFO"
    log_file: str = ""  # Empty = console only

    @classmethod
    def load(cls, path: Optional[Path] = None) -> Settings:
        """
        Load settings from JSON file.

        Args:
            path: Optional custom path. Uses default if None.

        Returns:
            Settings instance (defaults if file doesn't exist or fails)
        """
        if path is None:
            path = cls._default_path()

        try:
            if path.exists():
                with open(path, encoding="utf-8") as f:
                    data = json.load(f)
                # Filter to only known fields (ignore obsolete settings)
                known_fields = {f.name for f in cls.__dataclass_fields__.values()}
                filtered = {k: v for k, v in data.items() if k in known_fields}
                return cls(**filtered)
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Failed to load settings from %s: %s", path, e)

        return cls()

    def save(self, path: Optional[Path] = None) -> bool:
        """
        Save settings to JSON file.

        Args:
            path: Optional custom path. Uses default if None.

        Returns:
            True if saved successfully
        """
        if path is None:
            path = self._default_path()

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(asdict(self), f, indent=2)
            return True
        except OSError as e:
            logger.error("Failed to save settings to %s: %s", path, e)
            return False

    @staticmethod
    def _default_path() -> Path:
        """Get default settings file location."""
        return get_data_dir() / "settings.json"

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        defaults = Settings()
        for field_name in self.__dataclass_fields__:
            setattr(self, field_name, getattr(defaults, field_name))

    @property
    def trip_end_timeout_secs(self) -> float:
        """Get stop timeout in seconds (for the trip detector)."""
        return self.trip_end_timeout_min * 60

    @property
    def resolved_database_path(self) -> Path:
        if self.database_path:
            return Path(self.database_path).expanduser()
        return get_data_dir() / "trips.db"
