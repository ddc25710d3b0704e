"""
Reporter reputation ladder.

The only component allowed to write ``verified_reports``, ``false_reports``
and ``reputation`` on a User.
"""

import logging

from src.core.constants import (
    RELIABLE_VERIFIED_THRESHOLD,
    TRUSTED_VERIFIED_THRESHOLD,
    DEMOTION_FALSE_THRESHOLD,
)
from src.triage.models import User, ReputationTier

logger = logging.getLogger(__name__)


class ReputationLadder:
    """
    Derives a reporter's trust tier from verified/false report counters.

    Promotion looks at the tier the reporter holds when the report is
    verified, so one verification moves a reporter up at most one rung.
    """

    def __init__(
        self,
        reliable_threshold: int = RELIABLE_VERIFIED_THRESHOLD,
        trusted_threshold: int = TRUSTED_VERIFIED_THRESHOLD,
        demotion_threshold: int = DEMOTION_FALSE_THRESHOLD
    ):
        self.reliable_threshold = reliable_threshold
        self.trusted_threshold = trusted_threshold
        self.demotion_threshold = demotion_threshold

    def record_verified(self, reporter: User) -> User:
        """
        Credit a verified report and promote if a threshold is reached.

        Args:
            reporter: User whose report was verified (mutated in place)

        Returns:
            The same user
        """
        reporter.verified_reports += 1
        tier = reporter.reputation

        if tier is ReputationTier.NEW and reporter.verified_reports >= self.reliable_threshold:
            reporter.reputation = ReputationTier.RELIABLE
        elif tier is ReputationTier.RELIABLE and reporter.verified_reports >= self.trusted_threshold:
            reporter.reputation = ReputationTier.TRUSTED

        if reporter.reputation is not tier:
            logger.info(
                f"Reporter {reporter.username} promoted: {tier.value} -> {reporter.reputation.value} "
                f"({reporter.verified_reports} verified)"
            )
        return reporter

    def record_false(self, reporter: User) -> User:
        """
        Debit a false report and reset to NEW once the limit is reached.

        Args:
            reporter: User whose report was marked false (mutated in place)

        Returns:
            The same user
        """
        reporter.false_reports += 1
        tier = reporter.reputation

        if reporter.false_reports >= self.demotion_threshold:
            reporter.reputation = ReputationTier.NEW

        if reporter.reputation is not tier:
            logger.info(
                f"Reporter {reporter.username} demoted: {tier.value} -> NEW "
                f"({reporter.false_reports} false reports)"
            )
        return reporter
