"""
Incident status lifecycle.

Any status may move to any other; only authorization is restricted.
Reaching VERIFIED or FALSE requires an ADMIN and feeds the reporter's
reputation. Every transition is recorded in the append-only timeline.
"""

import logging
from typing import Optional, Union, FrozenSet

from src.core.exceptions import NotFoundError, UnauthorizedError
from src.triage.models import (
    Incident,
    IncidentStatus,
    Role,
    TimelineEntry,
    parse_enum,
    utc_now,
)
from src.triage.reputation import ReputationLadder
from src.triage.storage import StoreSession
from src.triage.users import require_user

logger = logging.getLogger(__name__)

# Statuses only an ADMIN may move an incident into
ADMIN_ONLY_STATUSES: FrozenSet[IncidentStatus] = frozenset({
    IncidentStatus.VERIFIED,
    IncidentStatus.FALSE,
})


def can_transition(role: Role, new_status: IncidentStatus) -> bool:
    """Check whether a role may move an incident into a status."""
    if new_status in ADMIN_ONLY_STATUSES:
        return role is Role.ADMIN
    return True


class LifecycleStateMachine:
    """Applies status transitions with role checks and reputation effects."""

    def __init__(self, reputation: Optional[ReputationLadder] = None, clock=utc_now):
        self.reputation = reputation or ReputationLadder()
        self.clock = clock

    def transition(
        self,
        store: StoreSession,
        incident_id: int,
        new_status: Union[IncidentStatus, str],
        notes: Optional[str],
        acting_username: str
    ) -> Incident:
        """
        Move an incident to a new status.

        Args:
            store: Storage session (inside a transaction)
            incident_id: Storage id of the incident
            new_status: Target status, member or name
            notes: Optional note; non-empty notes replace the admin notes
            acting_username: Existing account performing the change

        Returns:
            Updated incident

        Raises:
            InvalidInputError: unknown status name
            NotFoundError: incident or actor does not exist
            UnauthorizedError: actor may not reach the target status
        """
        status = parse_enum(IncidentStatus, new_status, "status")

        incident = store.get_incident(incident_id, for_update=True)
        if incident is None:
            raise NotFoundError(f"Incident not found: {incident_id}")

        actor = require_user(store, acting_username)

        if not can_transition(actor.role, status):
            raise UnauthorizedError(
                "Only administrators can verify or mark incidents as false"
            )

        previous = incident.status
        now = self.clock()

        incident.status = status
        if notes:
            incident.admin_notes = notes

        if incident.reporter_id is not None:
            self._apply_reputation(store, incident, status)

        incident.updated_at = now
        store.save_incident(incident)

        store.append_timeline(TimelineEntry(
            incident_id=incident.id,
            status=status,
            notes=notes,
            updated_by=actor.username,
            created_at=now,
        ))

        logger.info(
            f"Incident {incident.incident_id} status: {previous.value} -> {status.value} "
            f"by {actor.username}"
        )
        return incident

    def _apply_reputation(
        self,
        store: StoreSession,
        incident: Incident,
        status: IncidentStatus
    ) -> None:
        if status not in ADMIN_ONLY_STATUSES:
            return

        reporter = store.get_user_by_id(incident.reporter_id, for_update=True)
        if reporter is None:
            return

        if status is IncidentStatus.VERIFIED:
            self.reputation.record_verified(reporter)
        else:
            self.reputation.record_false(reporter)
        store.save_user(reporter)
