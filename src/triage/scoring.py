"""
Confidence scoring for incident reports.

The score is the sum of independent trust signals:

- a base score every report receives,
- an image bonus when a photo is attached,
- a per-confirmation bonus, capped so vote-stuffing stops paying off,
- a reputation bonus driven by the reporter's tier,
- a GPS-accuracy bonus banded by the reported accuracy radius,
- a freshness bonus measured against the scoring instant.

The result is clamped to [0, 100]. Because of the freshness term the score
depends on wall-clock time: re-scoring the same incident later can yield a
lower number. Pass ``now`` to pin it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any

from src.core.config import Settings
from src.core.constants import (
    MIN_CONFIDENCE_SCORE,
    MAX_CONFIDENCE_SCORE,
    GPS_ACCURACY_BANDS,
    GPS_ACCURACY_FALLBACK_DIVISOR,
    FRESHNESS_BONUSES,
)
from src.triage.models import Incident, ReputationTier, confidence_level, utc_now

logger = logging.getLogger(__name__)


@dataclass
class ScoringConfig:
    """Tunable contributions of the confidence score."""
    base_score: int = 30
    image_bonus: int = 20
    confirmation_bonus: int = 15
    max_confirmations: int = 3
    reputation_bonus_max: int = 20
    gps_accuracy_bonus_max: int = 15

    @classmethod
    def from_settings(cls, settings: Settings) -> "ScoringConfig":
        return cls(
            base_score=settings.confidence_base_score,
            image_bonus=settings.confidence_image_bonus,
            confirmation_bonus=settings.confidence_confirmation_bonus,
            max_confirmations=settings.confidence_max_confirmations,
            reputation_bonus_max=settings.confidence_reputation_bonus_max,
            gps_accuracy_bonus_max=settings.confidence_gps_accuracy_bonus_max,
        )


class ConfidenceScorer:
    """
    Maps an incident's attributes to a 0-100 confidence score.

    Pure apart from the freshness term, which reads the clock.
    """

    def __init__(self, config: Optional[ScoringConfig] = None, clock=utc_now):
        """
        Initialize scorer.

        Args:
            config: Score contributions (defaults match production)
            clock: Callable returning the current naive UTC datetime
        """
        self.config = config or ScoringConfig()
        self.clock = clock

    def score(
        self,
        incident: Incident,
        reporter_tier: Optional[ReputationTier],
        now: Optional[datetime] = None
    ) -> int:
        """
        Compute the confidence score for an incident.

        Args:
            incident: Incident to score
            reporter_tier: Reporter's reputation tier (None when no reporter)
            now: Scoring instant, defaults to the clock

        Returns:
            Integer score in [0, 100]
        """
        breakdown = self.breakdown(incident, reporter_tier, now)
        total = sum(breakdown.values())
        return max(MIN_CONFIDENCE_SCORE, min(MAX_CONFIDENCE_SCORE, total))

    def breakdown(
        self,
        incident: Incident,
        reporter_tier: Optional[ReputationTier],
        now: Optional[datetime] = None
    ) -> Dict[str, int]:
        """Return each contribution to the score by name (unclamped)."""
        now = now or self.clock()
        return {
            "base": self.config.base_score,
            "image": self.config.image_bonus if incident.has_image else 0,
            "confirmations": self.confirmation_bonus(incident.confirmation_count),
            "reputation": self.reputation_bonus(reporter_tier),
            "gps_accuracy": self.gps_accuracy_bonus(incident.gps_accuracy),
            "freshness": self.freshness_bonus(incident.created_at, now),
        }

    def confirmation_bonus(self, confirmation_count: int) -> int:
        counted = min(max(confirmation_count, 0), self.config.max_confirmations)
        return counted * self.config.confirmation_bonus

    def reputation_bonus(self, tier: Optional[ReputationTier]) -> int:
        if tier is None:
            return 0
        if tier is ReputationTier.NEW:
            return 0
        if tier is ReputationTier.RELIABLE:
            return self.config.reputation_bonus_max // 2
        if tier is ReputationTier.TRUSTED:
            return self.config.reputation_bonus_max
        raise ValueError(f"Unknown reputation tier: {tier!r}")

    def gps_accuracy_bonus(self, accuracy_meters: Optional[float]) -> int:
        # Lower radius means a better fix
        if accuracy_meters is None:
            return 0
        for upper_bound, divisor in GPS_ACCURACY_BANDS:
            if accuracy_meters <= upper_bound:
                return self.config.gps_accuracy_bonus_max // divisor
        return self.config.gps_accuracy_bonus_max // GPS_ACCURACY_FALLBACK_DIVISOR

    def freshness_bonus(self, created_at: Optional[datetime], now: datetime) -> int:
        if created_at is None:
            return 0
        age_hours = max(0.0, (now - created_at).total_seconds() / 3600)
        for max_age_hours, bonus in FRESHNESS_BONUSES:
            if age_hours <= max_age_hours:
                return bonus
        return 0

    def describe(
        self,
        incident: Incident,
        reporter_tier: Optional[ReputationTier],
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Score with its breakdown and level label, for diagnostics."""
        now = now or self.clock()
        score = self.score(incident, reporter_tier, now)
        return {
            "score": score,
            "level": confidence_level(score),
            "factors": self.breakdown(incident, reporter_tier, now),
        }


__all__ = ["ConfidenceScorer", "ScoringConfig", "confidence_level"]
