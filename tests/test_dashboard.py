"""
Tests for dashboard statistics
"""
import pytest

import sys
sys.path.insert(0, '.')

from conftest import OFFSET_500M


class TestDashboardStats:
    """Test suite for dashboard rollups."""

    def test_empty_dashboard(self, service):
        stats = service.dashboard_stats()

        assert stats.total_incidents == 0
        assert stats.verified_incidents == 0
        assert stats.resolved_incidents == 0
        assert stats.accuracy_rate == 0.0
        assert stats.average_response_time_hours == 0.0
        assert stats.recent_incidents == []

    def test_counts_and_accuracy(self, report, service):
        incidents = [report(lat_offset=i * OFFSET_500M).incident for i in range(4)]
        service.update_status(incidents[0].id, "VERIFIED", None, "admin")
        service.update_status(incidents[1].id, "RESOLVED", None, "responder")

        stats = service.dashboard_stats()

        assert stats.total_incidents == 4
        assert stats.verified_incidents == 1
        assert stats.resolved_incidents == 1
        assert stats.accuracy_rate == 25.0

    def test_response_time_uses_first_resolution(self, report, service, clock):
        a = report().incident
        b = report(lat_offset=OFFSET_500M).incident

        clock.advance(hours=2)
        service.update_status(a.id, "RESOLVED", None, "responder")

        clock.advance(hours=1)
        service.update_status(a.id, "IN_PROGRESS", "Flare-up", "responder")
        service.update_status(a.id, "RESOLVED", None, "responder")
        service.update_status(b.id, "IN_PROGRESS", None, "responder")

        clock.advance(hours=1)
        stats = service.dashboard_stats()

        # a: first RESOLVED after 2h; b: still open, measured to now (4h)
        assert stats.average_response_time_hours == pytest.approx(3.0)

    def test_response_time_ignores_other_statuses(self, report, service, clock):
        a = report().incident
        b = report(lat_offset=OFFSET_500M).incident

        clock.advance(hours=1)
        service.update_status(a.id, "RESOLVED", None, "responder")
        clock.advance(hours=5)
        service.update_status(b.id, "VERIFIED", None, "admin")

        assert service.dashboard_stats().average_response_time_hours == pytest.approx(1.0)

    def test_recent_incidents_newest_first(self, report, service, clock):
        created = []
        for i in range(12):
            created.append(report(lat_offset=i * OFFSET_500M).incident)
            clock.advance(minutes=1)

        recent = service.dashboard_stats().recent_incidents

        assert len(recent) == 10
        assert [r.id for r in recent] == [i.id for i in reversed(created)][:10]

    def test_to_dict(self, report, service):
        report()

        data = service.dashboard_stats().to_dict()

        assert set(data) == {
            "total_incidents",
            "verified_incidents",
            "resolved_incidents",
            "accuracy_rate",
            "average_response_time_hours",
            "recent_incidents",
        }
        assert data["recent_incidents"][0]["type"] == "FIRE"
