"""
Pytest configuration and fixtures
"""
import pytest
import sys
from datetime import datetime, timedelta
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.alerts.broadcaster import IncidentBroadcaster, RecordingSink
from src.triage.service import IncidentService
from src.triage.storage import InMemoryStore


# Downtown Sao Paulo
BASE_LAT = -23.5505
BASE_LON = -46.6333

# Roughly 150 m and 500 m north of the base point
OFFSET_150M = 0.00135
OFFSET_500M = 0.0045


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    """Clock pinned to 2026-01-15 12:00 UTC."""
    return FixedClock(datetime(2026, 1, 15, 12, 0, 0))


@pytest.fixture
def store():
    """Empty in-memory storage."""
    return InMemoryStore()


@pytest.fixture
def sink():
    """Broadcast sink that records every message."""
    return RecordingSink()


@pytest.fixture
def service(store, clock, sink):
    """Incident service with seeded staff accounts and a recording sink."""
    svc = IncidentService(
        store=store,
        broadcaster=IncidentBroadcaster(sinks=[sink]),
        clock=clock,
    )
    svc.seed_default_users()
    return svc


@pytest.fixture
def report(service):
    """Factory for FIRE reports near the base point."""
    def _report(lat_offset: float = 0.0, **kwargs):
        params = {
            "incident_type": "FIRE",
            "description": "Smoke coming from a warehouse roof",
            "latitude": BASE_LAT + lat_offset,
            "longitude": BASE_LON,
        }
        params.update(kwargs)
        return service.create_incident(**params)
    return _report
