"""
Tests for incident confirmations
"""
import threading

import pytest

import sys
sys.path.insert(0, '.')

from conftest import BASE_LAT, BASE_LON
from src.core.exceptions import DuplicateConfirmationError, NotFoundError


class TestConfirmIncident:
    """Test suite for confirmations through the service."""

    def test_first_confirmation(self, report, service):
        incident = report().incident

        confirmed = service.confirm_incident(incident.id, BASE_LAT, BASE_LON, "witness1")

        assert confirmed.confirmation_count == 1
        assert confirmed.confidence_score == 50
        assert service.get_incident(incident.id).confirmation_count == 1

    def test_second_confirmation_by_same_user_rejected(self, report, service):
        incident = report().incident
        service.confirm_incident(incident.id, BASE_LAT, BASE_LON, "witness1")

        with pytest.raises(DuplicateConfirmationError):
            service.confirm_incident(incident.id, BASE_LAT, BASE_LON, "witness1")

        stored = service.get_incident(incident.id)
        assert stored.confirmation_count == 1
        assert stored.confidence_score == 50

    def test_distinct_users_accumulate(self, report, service):
        incident = report().incident

        for name in ("witness1", "witness2"):
            service.confirm_incident(incident.id, BASE_LAT, BASE_LON, name)

        assert service.get_incident(incident.id).confirmation_count == 2

    def test_confirmation_bonus_caps_at_three(self, report, service):
        incident = report().incident

        for i in range(5):
            latest = service.confirm_incident(incident.id, BASE_LAT, BASE_LON, f"witness{i}")

        assert latest.confirmation_count == 5
        assert latest.confidence_score == 80

    def test_rescore_uses_reporter_tier(self, report, service):
        incident = report(reporter_username="admin").incident
        assert incident.confidence_score == 55

        confirmed = service.confirm_incident(incident.id, BASE_LAT, BASE_LON, "witness1")

        assert confirmed.confidence_score == 70

    def test_rescore_applies_freshness_at_confirmation_time(self, report, service, clock):
        incident = report().incident
        clock.advance(hours=2)

        confirmed = service.confirm_incident(incident.id, BASE_LAT, BASE_LON, "witness1")

        assert confirmed.confidence_score == 30 + 15 + 2
        assert confirmed.updated_at == clock.now

    def test_unknown_incident(self, service, store):
        with pytest.raises(NotFoundError):
            service.confirm_incident(999, BASE_LAT, BASE_LON, "ghost")

        with store.transaction() as session:
            assert session.get_user("ghost") is None

    def test_blank_username_confirms_as_anonymous(self, report, service):
        incident = report(reporter_username="alice").incident

        service.confirm_incident(incident.id, BASE_LAT, BASE_LON, "  ")

        with pytest.raises(DuplicateConfirmationError):
            service.confirm_incident(incident.id, BASE_LAT, BASE_LON, "anonymous")

    def test_confirmation_is_broadcast(self, report, service, sink):
        incident = report().incident
        sink.clear()

        service.confirm_incident(incident.id, BASE_LAT, BASE_LON, "witness1")

        assert len(sink.messages) == 1
        assert sink.messages[0].payload["confirmation_count"] == 1

    def test_rejected_confirmation_not_broadcast(self, report, service, sink):
        incident = report().incident
        service.confirm_incident(incident.id, BASE_LAT, BASE_LON, "witness1")
        sink.clear()

        with pytest.raises(DuplicateConfirmationError):
            service.confirm_incident(incident.id, BASE_LAT, BASE_LON, "witness1")

        assert sink.messages == []


class TestConcurrentConfirmations:
    """Confirmations racing on one incident."""

    def _run(self, workers):
        threads = [threading.Thread(target=w) for w in workers]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

    def test_distinct_users_all_counted(self, report, service):
        incident = report().incident

        self._run([
            lambda name=f"witness{i}": service.confirm_incident(
                incident.id, BASE_LAT, BASE_LON, name
            )
            for i in range(8)
        ])

        stored = service.get_incident(incident.id)
        assert stored.confirmation_count == 8
        assert stored.confidence_score == 30 + 45 + 5

    def test_same_user_counted_once(self, report, service):
        incident = report().incident
        outcomes = []
        lock = threading.Lock()

        def attempt():
            try:
                service.confirm_incident(incident.id, BASE_LAT, BASE_LON, "witness1")
                result = "ok"
            except DuplicateConfirmationError:
                result = "duplicate"
            with lock:
                outcomes.append(result)

        self._run([attempt] * 5)

        assert sorted(outcomes) == ["duplicate"] * 4 + ["ok"]
        assert service.get_incident(incident.id).confirmation_count == 1
