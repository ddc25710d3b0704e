"""
Crowd confirmation of incidents.
"""

import logging
from typing import Optional

from src.core.exceptions import DuplicateConfirmationError, NotFoundError
from src.triage.models import Incident, Confirmation, User, ReputationTier, utc_now
from src.triage.scoring import ConfidenceScorer
from src.triage.storage import StoreSession

logger = logging.getLogger(__name__)


def reporter_tier(store: StoreSession, incident: Incident) -> Optional[ReputationTier]:
    """Reputation tier of the incident's reporter, None when anonymous-less."""
    if incident.reporter_id is None:
        return None
    reporter = store.get_user_by_id(incident.reporter_id)
    return reporter.reputation if reporter else None


class ConfirmationTracker:
    """
    Records at most one confirmation per (incident, user).

    Must run inside a storage unit of work; the incident row is locked
    for the read-modify-write of the count and score.
    """

    def __init__(self, scorer: ConfidenceScorer, clock=utc_now):
        self.scorer = scorer
        self.clock = clock

    def confirm(
        self,
        store: StoreSession,
        incident_id: int,
        latitude: float,
        longitude: float,
        user: User
    ) -> Incident:
        """
        Confirm an incident on behalf of a user.

        Args:
            store: Storage session (inside a transaction)
            incident_id: Storage id of the incident
            latitude: Confirmer's latitude
            longitude: Confirmer's longitude
            user: Resolved confirming user

        Returns:
            Updated incident

        Raises:
            NotFoundError: incident does not exist
            DuplicateConfirmationError: user already confirmed it
        """
        incident = store.get_incident(incident_id, for_update=True)
        if incident is None:
            raise NotFoundError(f"Incident not found: {incident_id}")

        if store.get_confirmation(incident.id, user.id) is not None:
            raise DuplicateConfirmationError(
                f"User {user.username} already confirmed incident {incident.incident_id}"
            )

        now = self.clock()
        store.add_confirmation(Confirmation(
            incident_id=incident.id,
            user_id=user.id,
            latitude=latitude,
            longitude=longitude,
            created_at=now,
        ))

        incident.confirmation_count = store.count_confirmations(incident.id)
        incident.confidence_score = self.scorer.score(
            incident, reporter_tier(store, incident), now
        )
        incident.updated_at = now
        store.save_incident(incident)

        logger.info(
            f"Incident {incident.incident_id} confirmed by {user.username} "
            f"(confirmations={incident.confirmation_count}, score={incident.confidence_score})"
        )
        return incident
