"""
Tests for confidence scoring
"""
import itertools
from datetime import datetime, timedelta

import pytest

import sys
sys.path.insert(0, '.')

from src.core.config import Settings
from src.triage.models import Incident, IncidentType, ReputationTier
from src.triage.scoring import ConfidenceScorer, ScoringConfig, confidence_level


NOW = datetime(2026, 1, 15, 12, 0, 0)


def make_incident(**kwargs) -> Incident:
    params = {
        "incident_id": "INC-20260115120000-0001",
        "type": IncidentType.FIRE,
        "description": "Smoke over the ridge",
        "latitude": -23.5505,
        "longitude": -46.6333,
        "created_at": NOW,
        "updated_at": NOW,
    }
    params.update(kwargs)
    return Incident(**params)


class TestConfidenceScorer:
    """Test suite for ConfidenceScorer."""

    def setup_method(self):
        """Setup test fixtures."""
        self.scorer = ConfidenceScorer(clock=lambda: NOW)

    def test_fresh_anonymous_report(self):
        """Base plus freshness only."""
        incident = make_incident()
        assert self.scorer.score(incident, ReputationTier.NEW) == 35

    def test_no_reporter_scores_like_new(self):
        incident = make_incident()
        assert self.scorer.score(incident, None) == 35

    def test_image_and_two_confirmations(self):
        """30 base + 20 image + 30 confirmations + 5 freshness."""
        incident = make_incident(image_url="/uploads/a.jpg", confirmation_count=2)
        assert self.scorer.score(incident, ReputationTier.NEW) == 85

    def test_score_clamped_to_100(self):
        incident = make_incident(
            image_url="/uploads/a.jpg",
            confirmation_count=5,
            gps_accuracy=5.0,
        )
        assert self.scorer.score(incident, ReputationTier.TRUSTED) == 100
        # Unclamped sum exceeds the cap
        assert sum(self.scorer.breakdown(incident, ReputationTier.TRUSTED).values()) == 135

    def test_stale_report_has_no_freshness(self):
        incident = make_incident(created_at=NOW - timedelta(hours=7))
        assert self.scorer.score(incident, ReputationTier.NEW, NOW) == 30

    def test_uses_clock_when_now_omitted(self):
        incident = make_incident(created_at=NOW - timedelta(hours=3))
        assert self.scorer.score(incident, ReputationTier.NEW) == 32

    def test_confirmation_bonus_capped(self):
        assert self.scorer.confirmation_bonus(0) == 0
        assert self.scorer.confirmation_bonus(1) == 15
        assert self.scorer.confirmation_bonus(3) == 45
        assert self.scorer.confirmation_bonus(10) == 45

    @pytest.mark.parametrize("tier,expected", [
        (None, 0),
        (ReputationTier.NEW, 0),
        (ReputationTier.RELIABLE, 10),
        (ReputationTier.TRUSTED, 20),
    ])
    def test_reputation_bonus(self, tier, expected):
        assert self.scorer.reputation_bonus(tier) == expected

    @pytest.mark.parametrize("accuracy,expected", [
        (None, 0),
        (0.0, 15),
        (10.0, 15),
        (10.1, 7),
        (50.0, 7),
        (50.1, 3),
        (500.0, 3),
    ])
    def test_gps_accuracy_bonus(self, accuracy, expected):
        assert self.scorer.gps_accuracy_bonus(accuracy) == expected

    @pytest.mark.parametrize("age,expected", [
        (timedelta(0), 5),
        (timedelta(minutes=59), 5),
        (timedelta(hours=1), 5),
        (timedelta(hours=1, seconds=1), 2),
        (timedelta(hours=6), 2),
        (timedelta(hours=6, minutes=1), 0),
        (timedelta(days=3), 0),
    ])
    def test_freshness_bonus(self, age, expected):
        assert self.scorer.freshness_bonus(NOW - age, NOW) == expected

    def test_future_creation_counts_as_fresh(self):
        assert self.scorer.freshness_bonus(NOW + timedelta(minutes=5), NOW) == 5

    def test_score_always_within_bounds(self):
        """Every combination of inputs lands in [0, 100]."""
        combos = itertools.product(
            [None, "/uploads/a.jpg"],
            [0, 1, 2, 3, 7],
            [None, ReputationTier.NEW, ReputationTier.RELIABLE, ReputationTier.TRUSTED],
            [None, 3.0, 25.0, 200.0],
            [timedelta(0), timedelta(hours=2), timedelta(days=2)],
        )
        for image_url, confirmations, tier, accuracy, age in combos:
            incident = make_incident(
                image_url=image_url,
                confirmation_count=confirmations,
                gps_accuracy=accuracy,
                created_at=NOW - age,
            )
            assert 0 <= self.scorer.score(incident, tier, NOW) <= 100

    def test_describe(self):
        incident = make_incident(image_url="/uploads/a.jpg", confirmation_count=2)
        result = self.scorer.describe(incident, ReputationTier.NEW)

        assert result["score"] == 85
        assert result["level"] == "HIGH"
        assert result["factors"]["confirmations"] == 30
        assert result["factors"]["image"] == 20

    def test_custom_config(self):
        scorer = ConfidenceScorer(ScoringConfig(base_score=50, image_bonus=0), clock=lambda: NOW)
        assert scorer.score(make_incident(image_url="/uploads/a.jpg"), None) == 55

    def test_score_clamped_to_zero(self):
        scorer = ConfidenceScorer(ScoringConfig(base_score=-40), clock=lambda: NOW)
        assert scorer.score(make_incident(), ReputationTier.NEW) == 0


class TestConfidenceLevel:
    """Test suite for confidence labels."""

    @pytest.mark.parametrize("score,level", [
        (100, "HIGH"),
        (70, "HIGH"),
        (69, "MEDIUM"),
        (40, "MEDIUM"),
        (39, "LOW"),
        (0, "LOW"),
    ])
    def test_levels(self, score, level):
        assert confidence_level(score) == level


class TestScoringConfig:
    """Test suite for ScoringConfig."""

    def test_from_default_settings(self):
        assert ScoringConfig.from_settings(Settings()) == ScoringConfig()

    def test_from_overridden_settings(self):
        config = ScoringConfig.from_settings(Settings(confidence_image_bonus=25))
        assert config.image_bonus == 25
