"""SQLite persistence for completed trips and trip statistics."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import closing
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

from PySide6.QtCore import QObject, Signal

from haulscore.errors import PreconditionError, TripStoreError
from haulscore.models.performance import Grade
from haulscore.models.trip import Trip, TripStatistics

logger = logging.getLogger(__name__)


# SQL schema
SCHEMA = """
-- Completed driving sessions with performance data
CREATE TABLE IF NOT EXISTS Trips (
    Id INTEGER PRIMARY KEY AUTOINCREMENT,
    StartTime TEXT NOT NULL,
    EndTime TEXT NOT NULL,
    DurationMinutes REAL NOT NULL,
    DistanceMiles REAL NOT NULL,
    SmoothnessScore REAL NOT NULL,
    FuelEfficiencyMPG REAL NOT NULL,
    SpeedCompliancePercent REAL NOT NULL,
    SafetyScore REAL NOT NULL DEFAULT 100.0,
    OverallGrade TEXT NOT NULL,
    AverageSpeed REAL NOT NULL,
    FuelConsumed REAL NOT NULL
);

-- Indexes for common queries
CREATE INDEX IF NOT EXISTS idx_trips_starttime ON Trips(StartTime DESC);
CREATE INDEX IF NOT EXISTS idx_trips_grade ON Trips(OverallGrade);
"""

TRIP_COLUMNS = """
    Id, StartTime, EndTime, DurationMinutes, DistanceMiles,
    SmoothnessScore, FuelEfficiencyMPG, SpeedCompliancePercent, SafetyScore,
    OverallGrade, AverageSpeed, FuelConsumed
"""


def to_iso(dt: datetime) -> str:
    """
    Format a datetime as UTC ISO 8601 with fixed microsecond precision.

    Fixed width keeps lexical order equal to chronological order in SQL.
    Naive datetimes are taken to be UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(text: str) -> datetime:
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class TripStore(QObject):
    """
    SQLite store for completed trips.

    Every operation opens its own connection and closes it when done, so the
    store can be used from the sample-processing thread and from background
    save tasks at the same time. ``initialize()`` must succeed before any
    other operation.
    """

    # Signals
    trip_saved = Signal(int)  # trip id
    error_occurred = Signal(str)  # error message

    # Configuration
    CONNECT_TIMEOUT_SECS = 5.0

    def __init__(self, db_path: Path, retention_days: int = 365):
        super().__init__()
        self._db_path = Path(db_path)
        self._retention_days = retention_days
        self._initialized = False

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Create the database directory and schema if missing."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            with closing(self._connect()) as conn:
                conn.executescript(SCHEMA)
        except (OSError, sqlite3.Error) as e:
            raise self._failure("Database init failed", e) from e

        self._initialized = True
        logger.info("Trip store initialized with database: %s", self._db_path)

    def verify(self) -> bool:
        """Check the database can be opened and queried."""
        try:
            with closing(self._connect()) as conn:
                conn.execute("SELECT COUNT(*) FROM Trips").fetchone()
            return True
        except sqlite3.Error as e:
            logger.warning("Database verification failed for %s: %s", self._db_path, e)
            return False

    def save_trip(self, trip: Trip) -> int:
        """
        Insert a completed trip.

        Args:
            trip: Finalized trip (must have an end time)

        Returns:
            The new trip id (also assigned to ``trip.id``)
        """
        self._require_initialized("save_trip")
        if trip.end_time is None:
            raise ValueError("Trip must be finalized before it is saved")

        try:
            with closing(self._connect()) as conn:
                with conn:
                    cursor = conn.execute(
                        """
                        INSERT INTO Trips (
                            StartTime, EndTime, DurationMinutes, DistanceMiles,
                            SmoothnessScore, FuelEfficiencyMPG, SpeedCompliancePercent,
                            SafetyScore, OverallGrade, AverageSpeed, FuelConsumed
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            to_iso(trip.start_time),
                            to_iso(trip.end_time),
                            trip.duration_minutes,
                            trip.distance_miles,
                            trip.smoothness_score,
                            trip.fuel_efficiency_mpg,
                            trip.speed_compliance_percent,
                            trip.safety_score,
                            trip.overall_grade or "",
                            trip.average_speed,
                            trip.fuel_consumed,
                        ),
                    )
                    trip_id = cursor.lastrowid
        except sqlite3.Error as e:
            raise self._failure("Save trip failed", e) from e

        trip.id = trip_id
        logger.info(
            "Trip saved with id %d: grade %s, %.2f mi",
            trip_id,
            trip.overall_grade,
            trip.distance_miles,
        )
        self.trip_saved.emit(trip_id)
        return trip_id

    def get_recent_trips(self, count: int = 20) -> List[Trip]:
        """
        Get the most recent trips, newest first.

        Args:
            count: Maximum number of trips to return (> 0)
        """
        if count <= 0:
            raise ValueError("count must be greater than zero")
        return self._query_trips(
            "Get recent trips failed",
            f"SELECT {TRIP_COLUMNS} FROM Trips ORDER BY StartTime DESC, Id DESC LIMIT ?",
            (count,),
        )

    def get_trips_by_date_range(self, start: datetime, end: datetime) -> List[Trip]:
        """
        Get trips whose start time falls within [start, end], newest first.

        Naive datetimes are interpreted as UTC.
        """
        start_iso, end_iso = to_iso(start), to_iso(end)
        if end_iso < start_iso:
            raise ValueError("end must be greater than or equal to start")
        return self._query_trips(
            "Get trips by date range failed",
            f"""
            SELECT {TRIP_COLUMNS} FROM Trips
            WHERE StartTime >= ? AND StartTime <= ?
            ORDER BY StartTime DESC, Id DESC
            """,
            (start_iso, end_iso),
        )

    def get_all_trips(self) -> List[Trip]:
        """Get every stored trip, newest first."""
        return self._query_trips(
            "Get all trips failed",
            f"SELECT {TRIP_COLUMNS} FROM Trips ORDER BY StartTime DESC, Id DESC",
            (),
        )

    def get_statistics(self) -> TripStatistics:
        """
        Aggregate statistics over the full trip history.

        Best/worst grade use grade rank, not text order.
        """
        self._require_initialized("get_statistics")
        try:
            with closing(self._connect()) as conn:
                row = conn.execute(
                    """
                    SELECT
                        COUNT(*),
                        COALESCE(SUM(DistanceMiles), 0),
                        COALESCE(SUM(DurationMinutes), 0),
                        COALESCE(AVG(SmoothnessScore), 0),
                        COALESCE(AVG(FuelEfficiencyMPG), 0),
                        COALESCE(AVG(SpeedCompliancePercent), 0),
                        COALESCE(AVG(SafetyScore), 0),
                        COALESCE(SUM(FuelConsumed), 0),
                        COALESCE(AVG(DistanceMiles), 0),
                        COALESCE(AVG(DurationMinutes), 0)
                    FROM Trips
                    """
                ).fetchone()
                grade_rows = conn.execute(
                    "SELECT OverallGrade, COUNT(*) FROM Trips GROUP BY OverallGrade"
                ).fetchall()
        except sqlite3.Error as e:
            raise self._failure("Get statistics failed", e) from e

        stats = TripStatistics(
            total_trips=row[0],
            total_distance_miles=row[1],
            total_duration_minutes=row[2],
            average_smoothness_score=row[3],
            average_fuel_efficiency_mpg=row[4],
            average_speed_compliance_percent=row[5],
            average_safety_score=row[6],
            total_fuel_consumed=row[7],
            average_trip_distance=row[8],
            average_trip_duration=row[9],
        )

        if stats.total_trips > 0:
            stats.average_overall_score = (
                stats.average_smoothness_score
                + stats.average_speed_compliance_percent
                + stats.average_safety_score
            ) / 3.0

        grades = []
        for text, count in grade_rows:
            grade = Grade.parse(text)
            if grade is not None:
                grades.append(grade)
                stats.grade_counts[grade] = count
        if grades:
            stats.best_grade = min(grades, key=lambda g: g.rank)
            stats.worst_grade = max(grades, key=lambda g: g.rank)

        logger.debug(
            "Statistics: %d trips, %.1f average score",
            stats.total_trips,
            stats.average_overall_score,
        )
        return stats

    def delete_trip(self, trip_id: int) -> bool:
        """Delete one trip. Returns True if a row was removed."""
        self._require_initialized("delete_trip")
        try:
            with closing(self._connect()) as conn:
                with conn:
                    cursor = conn.execute("DELETE FROM Trips WHERE Id = ?", (trip_id,))
        except sqlite3.Error as e:
            raise self._failure("Delete trip failed", e) from e
        return cursor.rowcount > 0

    def cleanup_old_trips(
        self, max_age_days: Optional[int] = None, now: Optional[datetime] = None
    ) -> int:
        """
        Delete trips that started more than max_age_days ago.

        Args:
            max_age_days: Maximum age in days (default: the store retention).
                0 deletes every trip that started before now.
            now: Reference time (default: current UTC time)

        Returns:
            Number of trips deleted
        """
        self._require_initialized("cleanup_old_trips")
        if max_age_days is None:
            max_age_days = self._retention_days
        now = now or datetime.now(timezone.utc)
        cutoff = to_iso(now - timedelta(days=max_age_days))

        try:
            with closing(self._connect()) as conn:
                with conn:
                    deleted = conn.execute(
                        "DELETE FROM Trips WHERE StartTime < ?", (cutoff,)
                    ).rowcount
                if deleted > 0:
                    # Vacuum to reclaim space
                    conn.execute("VACUUM")
        except sqlite3.Error as e:
            raise self._failure("Cleanup failed", e) from e

        if deleted > 0:
            logger.info("Deleted %d trips older than %d days", deleted, max_age_days)
        return deleted

    # ---------- Internals ----------

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self._db_path), timeout=self.CONNECT_TIMEOUT_SECS)

    def _require_initialized(self, operation: str) -> None:
        if not self._initialized:
            raise PreconditionError(f"TripStore.initialize() must be called before {operation}()")

    def _failure(self, context: str, error: Exception) -> TripStoreError:
        message = f"{context}: {error}"
        logger.error("%s (database: %s)", message, self._db_path, exc_info=error)
        self.error_occurred.emit(message)
        return TripStoreError(message)

    def _query_trips(self, context: str, sql: str, params: tuple) -> List[Trip]:
        self._require_initialized("query")
        try:
            with closing(self._connect()) as conn:
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise self._failure(context, e) from e
        return [self._row_to_trip(row) for row in rows]

    @staticmethod
    def _row_to_trip(row: tuple) -> Trip:
        return Trip(
            id=row[0],
            start_time=from_iso(row[1]),
            end_time=from_iso(row[2]),
            duration_minutes=row[3],
            distance_miles=row[4],
            smoothness_score=row[5],
            fuel_efficiency_mpg=row[6],
            speed_compliance_percent=row[7],
            safety_score=row[8],
            overall_grade=row[9],
            average_speed=row[10],
            fuel_consumed=row[11],
        )
