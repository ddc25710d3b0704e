"""
Tests for duplicate detection
"""
from datetime import datetime, timedelta

import pytest

import sys
sys.path.insert(0, '.')

from conftest import BASE_LAT, BASE_LON, OFFSET_150M, OFFSET_500M
from src.core.geo_utils import haversine_distance
from src.triage.duplicates import DuplicateDetector
from src.triage.models import Incident, IncidentStatus, IncidentType
from src.triage.storage import filter_duplicates


class TestDuplicateDetectionOnReports:
    """Duplicate hints attached to new reports."""

    def test_nearby_report_within_window_is_flagged(self, report, clock):
        first = report().incident
        clock.advance(minutes=5)

        second = report(lat_offset=OFFSET_150M)

        assert [d.id for d in second.potential_duplicates] == [first.id]

    def test_far_report_is_not_flagged(self, report, clock):
        report()
        clock.advance(minutes=5)

        result = report(lat_offset=OFFSET_500M)

        assert result.potential_duplicates == []

    def test_different_type_is_not_flagged(self, report, clock):
        report()
        clock.advance(minutes=1)

        result = report(lat_offset=OFFSET_150M, incident_type="ACCIDENT")

        assert result.potential_duplicates == []

    def test_window_edge_is_inclusive(self, report, clock):
        first = report().incident
        clock.advance(minutes=10)

        result = report(lat_offset=OFFSET_150M)

        assert [d.id for d in result.potential_duplicates] == [first.id]

    def test_report_outside_window_is_not_flagged(self, report, clock):
        report()
        clock.advance(minutes=10, seconds=1)

        result = report(lat_offset=OFFSET_150M)

        assert result.potential_duplicates == []

    def test_false_incidents_are_ignored(self, report, service, clock):
        first = report().incident
        service.update_status(first.id, "FALSE", "Prank call", "admin")
        clock.advance(minutes=2)

        result = report(lat_offset=OFFSET_150M)

        assert result.potential_duplicates == []

    def test_duplicates_never_block_creation(self, report, service, clock):
        report()
        clock.advance(minutes=1)
        report()
        clock.advance(minutes=1)
        third = report()

        assert len(third.potential_duplicates) == 2
        assert service.dashboard_stats().total_incidents == 3

    def test_most_recent_first(self, report, clock):
        first = report().incident
        clock.advance(minutes=1)
        second = report().incident
        clock.advance(minutes=1)

        result = report()

        assert [d.id for d in result.potential_duplicates] == [second.id, first.id]

    def test_point_query_does_not_create(self, report, service, clock):
        first = report().incident
        clock.advance(minutes=3)

        matches = service.find_duplicates(BASE_LAT + OFFSET_150M, BASE_LON, "fire")

        assert [m.id for m in matches] == [first.id]
        assert service.dashboard_stats().total_incidents == 1


class TestDuplicateDetector:
    """Test suite for DuplicateDetector configuration."""

    def setup_method(self):
        """Setup test fixtures."""
        self.now = datetime(2026, 1, 15, 12, 0, 0)
        self.detector = DuplicateDetector(clock=lambda: self.now)

    def test_defaults(self):
        assert self.detector.distance_threshold_km == 0.3
        assert self.detector.time_window_minutes == 10

    def test_cutoff(self):
        assert self.detector.cutoff() == self.now - timedelta(minutes=10)
        assert self.detector.cutoff(self.now + timedelta(hours=1)) == self.now + timedelta(minutes=50)


class TestFilterDuplicates:
    """Test suite for the duplicate-candidate rules."""

    def setup_method(self):
        """Setup test fixtures."""
        self.now = datetime(2026, 1, 15, 12, 0, 0)
        self.incident = Incident(
            incident_id="INC-20260115115500-0001",
            type=IncidentType.FIRE,
            description="Grass fire",
            latitude=BASE_LAT + OFFSET_150M,
            longitude=BASE_LON,
            id=1,
            created_at=self.now - timedelta(minutes=5),
        )

    def test_distance_threshold_is_inclusive(self):
        exact = haversine_distance(
            BASE_LAT, BASE_LON, self.incident.latitude, self.incident.longitude
        )
        matches = filter_duplicates(
            [self.incident], BASE_LAT, BASE_LON, IncidentType.FIRE,
            self.now - timedelta(minutes=10), exact,
        )
        assert matches == [self.incident]

    def test_just_beyond_threshold(self):
        exact = haversine_distance(
            BASE_LAT, BASE_LON, self.incident.latitude, self.incident.longitude
        )
        matches = filter_duplicates(
            [self.incident], BASE_LAT, BASE_LON, IncidentType.FIRE,
            self.now - timedelta(minutes=10), exact * 0.999,
        )
        assert matches == []

    @pytest.mark.parametrize("status,expected", [
        (IncidentStatus.UNVERIFIED, 1),
        (IncidentStatus.VERIFIED, 1),
        (IncidentStatus.IN_PROGRESS, 1),
        (IncidentStatus.RESOLVED, 1),
        (IncidentStatus.FALSE, 0),
    ])
    def test_status_rules(self, status, expected):
        self.incident.status = status
        matches = filter_duplicates(
            [self.incident], BASE_LAT, BASE_LON, IncidentType.FIRE,
            self.now - timedelta(minutes=10), 0.3,
        )
        assert len(matches) == expected
