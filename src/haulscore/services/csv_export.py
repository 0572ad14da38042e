"""CSV export of persisted trips."""

from __future__ import annotations

import csv
import logging
from datetime import datetime
from pathlib import Path
from typing import List

from haulscore.models.trip import Trip
from haulscore.services.trip_store import TripStore, to_iso

logger = logging.getLogger(__name__)

CSV_HEADER = [
    "Id",
    "StartTime",
    "EndTime",
    "Duration",
    "Distance",
    "Smoothness",
    "MPG",
    "SpeedCompliance",
    "Grade",
    "AvgSpeed",
    "FuelConsumed",
]


def _trip_row(trip: Trip) -> List[str]:
    """Format one trip as CSV fields (ISO 8601 times, two-decimal numbers)."""
    return [
        "" if trip.id is None else str(trip.id),
        to_iso(trip.start_time),
        to_iso(trip.end_time) if trip.end_time else "",
        f"{trip.duration_minutes:.2f}",
        f"{trip.distance_miles:.2f}",
        f"{trip.smoothness_score:.2f}",
        f"{trip.fuel_efficiency_mpg:.2f}",
        f"{trip.speed_compliance_percent:.2f}",
        trip.overall_grade,
        f"{trip.average_speed:.2f}",
        f"{trip.fuel_consumed:.2f}",
    ]


class TripCsvExporter:
    """Export trip history to CSV."""

    @staticmethod
    def export_trips(trips: List[Trip], output_path: Path) -> bool:
        """
        Write trips to a CSV file.

        Args:
            trips: Trips to export, in the order they should appear
            output_path: Destination file path (.csv)

        Returns:
            True if export succeeded, False on error or when there is nothing to export
        """
        if not trips:
            return False

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, "w", newline="", encoding="utf-8") as f:
                writer = csv.writer(f)
                writer.writerow(CSV_HEADER)
                for trip in trips:
                    writer.writerow(_trip_row(trip))
        except OSError as e:
            logger.error("CSV export to %s failed: %s", output_path, e)
            return False

        logger.info("Exported %d trips to %s", len(trips), output_path)
        return True

    @staticmethod
    def export_store(store: TripStore, output_path: Path) -> bool:
        """Export every trip in the store, newest first."""
        return TripCsvExporter.export_trips(store.get_all_trips(), output_path)

    @staticmethod
    def generate_filename(when: datetime) -> str:
        """
        Generate a filename for a full-history export.

        Returns:
            Filename like "trips_20240115_0830.csv"
        """
        return f"trips_{when.strftime('%Y%m%d_%H%M')}.csv"
