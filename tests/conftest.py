import pytest
from PySide6.QtCore import QCoreApplication

from haulscore.models.telemetry import TelemetrySample
from haulscore.services.trip_store import TripStore

# Fixed base time so stored timestamps are predictable
T0 = 1_700_000_000.0


@pytest.fixture(scope="session", autouse=True)
def qapp():
    """Qt signals and the thread pool need a core application instance."""
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture
def store(tmp_path):
    trip_store = TripStore(tmp_path / "trips.db")
    trip_store.initialize()
    return trip_store


def make_sample(t: float = 0.0, **kwargs) -> TelemetrySample:
    """Connected, unpaused sample at T0 + t seconds."""
    values = {"timestamp": T0 + t, "connected": True}
    values.update(kwargs)
    return TelemetrySample(**values)
