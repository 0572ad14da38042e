import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

from PySide6.QtCore import QCoreApplication, QThreadPool

from haulscore.config.logging_setup import setup_logging
from haulscore.config.settings import Settings
from haulscore.errors import HaulScoreError
from haulscore.models.performance import Grade, PerformanceSnapshot
from haulscore.models.trip import TripStatistics
from haulscore.services.csv_export import TripCsvExporter
from haulscore.services.mock_telemetry import MockTelemetrySource
from haulscore.services.performance_calculator import PerformanceCalculator
from haulscore.services.replay import read_samples
from haulscore.services.trip_detector import TripDetector
from haulscore.services.trip_store import TripStore
from haulscore.utils.scoring import format_duration

logger = logging.getLogger("haulscore")


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Score truck driving telemetry and log trips")
    source = p.add_mutually_exclusive_group()
    source.add_argument("--replay", type=Path, help="Replay a JSON-lines telemetry recording")
    source.add_argument("--mock", type=int, metavar="SECONDS", help="Score N seconds of mock data")
    p.add_argument("--seed", type=int, default=None, help="Seed for mock data")
    p.add_argument("--settings", type=Path, help="Settings file (default: data dir)")
    p.add_argument("--db", type=Path, help="Trip database path (overrides settings)")
    p.add_argument("--stats", action="store_true", help="Print trip history statistics")
    p.add_argument("--export-csv", type=Path, metavar="PATH", help="Export all trips to CSV")
    p.add_argument("--cleanup", action="store_true", help="Delete trips past the retention period")
    p.add_argument("--log-level", default=None, help="Override the configured log level")
    return p.parse_args(argv)


def print_snapshot(snapshot: PerformanceSnapshot) -> None:
    print(f"Overall:          {snapshot.overall_score:6.1f}  ({snapshot.overall_grade})")
    print(f"Smoothness:       {snapshot.smoothness_score:6.1f}")
    print(
        f"Speed compliance: {snapshot.speed_compliance_percent:6.1f}%"
        f" ({snapshot.speed_compliance_grade})"
    )
    print(f"Safety:           {snapshot.safety_score:6.1f}")
    print(f"Vehicle:          {snapshot.vehicle_condition_score:6.1f}")
    print(f"Est. fuel:        {snapshot.fuel_efficiency_mpg:6.1f} mpg")
    print(
        f"Session:          {format_duration(snapshot.session_duration_minutes * 60)},"
        f" {snapshot.session_distance_miles:.2f} mi"
    )


def print_statistics(stats: TripStatistics) -> None:
    print(f"Trips:            {stats.total_trips}")
    print(f"Total distance:   {stats.total_distance_miles:.1f} mi")
    print(f"Total time:       {format_duration(stats.total_duration_minutes * 60)}")
    print(f"Average score:    {stats.average_overall_score:.1f}")
    if stats.grade_counts:
        print(
            f"Average grade:    {Grade.from_score(stats.average_grade_score)}"
            f" ({stats.average_grade_score:.1f})"
        )
    best = stats.best_grade or "N/A"
    worst = stats.worst_grade or "N/A"
    print(f"Best / worst:     {best} / {worst}")


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = Settings.load(args.settings) if args.settings else Settings.load()
    setup_logging(args.log_level or settings.log_level, settings.log_file or None)

    _app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])

    db_path = args.db or settings.resolved_database_path
    store = TripStore(db_path, settings.data_retention_days)
    try:
        store.initialize()
    except HaulScoreError as e:
        logger.error("Cannot open trip database: %s", e)
        return 1

    calculator = PerformanceCalculator()
    detector = TripDetector(store, calculator, settings)
    calculator.notification_raised.connect(
        lambda n: logger.info("%+.1f %s", n.point_change, n.message)
    )

    if args.replay or args.mock:
        if args.replay:
            try:
                samples = read_samples(args.replay)
                for sample in samples:
                    calculator.update_from_sample(sample)
                    detector.update_from_sample(sample)
            except OSError as e:
                logger.error("Cannot read recording %s: %s", args.replay, e)
                return 1
        else:
            source = MockTelemetrySource(seed=args.seed, start_time=datetime.now().timestamp())
            source.sample_ready.connect(calculator.update_from_sample)
            source.sample_ready.connect(detector.update_from_sample)
            source.generate(args.mock)
            source.stop()

        detector.end_current_trip()
        QThreadPool.globalInstance().waitForDone()
        print_snapshot(calculator.current_snapshot())

    try:
        if args.cleanup:
            store.cleanup_old_trips()
        if args.stats:
            print_statistics(store.get_statistics())
        if args.export_csv:
            out = args.export_csv
            if out.is_dir():
                out = out / TripCsvExporter.generate_filename(datetime.now())
            if not TripCsvExporter.export_store(store, out):
                logger.warning("No trips exported to %s", out)
    except HaulScoreError as e:
        logger.error("%s", e)
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
