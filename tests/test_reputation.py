"""
Tests for the reporter reputation ladder
"""
import pytest

import sys
sys.path.insert(0, '.')

from src.triage.models import User, ReputationTier
from src.triage.reputation import ReputationLadder


class TestReputationLadder:
    """Test suite for ReputationLadder."""

    def setup_method(self):
        """Setup test fixtures."""
        self.ladder = ReputationLadder()
        self.user = User(username="reporter", id=1)

    def test_new_reporter_promoted_at_three_verified(self):
        self.ladder.record_verified(self.user)
        self.ladder.record_verified(self.user)
        assert self.user.reputation is ReputationTier.NEW

        self.ladder.record_verified(self.user)

        assert self.user.verified_reports == 3
        assert self.user.reputation is ReputationTier.RELIABLE

    def test_reliable_promoted_at_ten_verified(self):
        self.user.reputation = ReputationTier.RELIABLE
        self.user.verified_reports = 8

        self.ladder.record_verified(self.user)
        assert self.user.reputation is ReputationTier.RELIABLE

        self.ladder.record_verified(self.user)
        assert self.user.verified_reports == 10
        assert self.user.reputation is ReputationTier.TRUSTED

    def test_one_rung_per_verification(self):
        """A NEW reporter past both thresholds climbs one tier at a time."""
        self.user.verified_reports = 12

        self.ladder.record_verified(self.user)
        assert self.user.reputation is ReputationTier.RELIABLE

        self.ladder.record_verified(self.user)
        assert self.user.reputation is ReputationTier.TRUSTED

    def test_trusted_stays_trusted(self):
        self.user.reputation = ReputationTier.TRUSTED
        self.user.verified_reports = 40

        self.ladder.record_verified(self.user)

        assert self.user.reputation is ReputationTier.TRUSTED
        assert self.user.verified_reports == 41

    @pytest.mark.parametrize("tier", list(ReputationTier))
    def test_demoted_to_new_at_three_false(self, tier):
        self.user.reputation = tier

        self.ladder.record_false(self.user)
        self.ladder.record_false(self.user)
        assert self.user.reputation is tier

        self.ladder.record_false(self.user)

        assert self.user.false_reports == 3
        assert self.user.reputation is ReputationTier.NEW

    def test_demoted_reporter_can_climb_again(self):
        self.user.reputation = ReputationTier.TRUSTED
        self.user.verified_reports = 15
        for _ in range(3):
            self.ladder.record_false(self.user)
        assert self.user.reputation is ReputationTier.NEW

        self.ladder.record_verified(self.user)

        assert self.user.reputation is ReputationTier.RELIABLE

    def test_false_reports_past_threshold_keep_new(self):
        self.user.false_reports = 5

        self.ladder.record_verified(self.user)
        self.ladder.record_verified(self.user)
        self.ladder.record_verified(self.user)
        assert self.user.reputation is ReputationTier.RELIABLE

        self.ladder.record_false(self.user)

        assert self.user.reputation is ReputationTier.NEW

    def test_custom_thresholds(self):
        ladder = ReputationLadder(reliable_threshold=1, trusted_threshold=2, demotion_threshold=1)

        ladder.record_verified(self.user)
        assert self.user.reputation is ReputationTier.RELIABLE
        ladder.record_verified(self.user)
        assert self.user.reputation is ReputationTier.TRUSTED
        ladder.record_false(self.user)
        assert self.user.reputation is ReputationTier.NEW
