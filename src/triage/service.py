"""
Incident service: the entry point for every triage operation.

Each mutating call runs as one storage unit of work and broadcasts the
committed incident afterwards. Failures leave storage untouched.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Tuple, Union, Callable

from src.alerts.broadcaster import IncidentBroadcaster
from src.core.config import Settings
from src.core.constants import (
    ANONYMOUS_USERNAME,
    INITIAL_TIMELINE_NOTE,
    MAX_QUERY_LIMIT,
    DEFAULT_QUERY_LIMIT,
)
from src.core.exceptions import (
    InvalidInputError,
    NotFoundError,
    IncidentCodeCollisionError,
)
from src.core.geo_utils import haversine_distance, is_valid_coordinate
from src.triage.confirmations import ConfirmationTracker
from src.triage.dashboard import DashboardAggregator, DashboardStats
from src.triage.duplicates import DuplicateDetector
from src.triage.id_generator import generate_incident_code
from src.triage.lifecycle import LifecycleStateMachine
from src.triage.models import (
    Incident,
    IncidentStatus,
    IncidentType,
    IncidentQuery,
    TimelineEntry,
    User,
    parse_enum,
    utc_now,
)
from src.triage.reputation import ReputationLadder
from src.triage.scoring import ConfidenceScorer, ScoringConfig
from src.triage.storage import TriageStore, StoreSession
from src.triage.users import get_or_create_public_user, seed_default_users

logger = logging.getLogger(__name__)


@dataclass
class CreationResult:
    """New incident plus the advisory duplicate check."""
    incident: Incident
    potential_duplicates: List[Incident] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = self.incident.to_dict()
        data["potential_duplicates"] = [d.to_dict() for d in self.potential_duplicates]
        return data


def validate_location(latitude: Optional[float], longitude: Optional[float]) -> None:
    if latitude is None or longitude is None:
        raise InvalidInputError("Latitude and longitude are required")
    if not is_valid_coordinate(latitude, longitude):
        raise InvalidInputError(f"Coordinates out of range: ({latitude}, {longitude})")


class IncidentService:
    """
    Orchestrates reporting, confirmation, status changes and queries.

    Storage, broadcast and clock are injected so the engine stays
    independent of any particular database or transport.
    """

    def __init__(
        self,
        store: TriageStore,
        scorer: Optional[ConfidenceScorer] = None,
        detector: Optional[DuplicateDetector] = None,
        broadcaster: Optional[IncidentBroadcaster] = None,
        reputation: Optional[ReputationLadder] = None,
        clock: Callable = utc_now,
        code_generator: Callable = generate_incident_code,
        code_attempts: int = 5
    ):
        """
        Initialize incident service.

        Args:
            store: Storage backend
            scorer: Confidence scorer
            detector: Duplicate detector
            broadcaster: Post-commit publisher
            reputation: Reputation ladder used by status transitions
            clock: Callable returning the current naive UTC datetime
            code_generator: Public incident code factory
            code_attempts: Tries before a code collision is surfaced
        """
        self.store = store
        self.clock = clock
        self.scorer = scorer or ConfidenceScorer(clock=clock)
        self.detector = detector or DuplicateDetector(clock=clock)
        self.broadcaster = broadcaster or IncidentBroadcaster()
        self.tracker = ConfirmationTracker(self.scorer, clock=clock)
        self.lifecycle = LifecycleStateMachine(reputation or ReputationLadder(), clock=clock)
        self.dashboard = DashboardAggregator(clock=clock)
        self.code_generator = code_generator
        self.code_attempts = max(1, code_attempts)

    @classmethod
    def from_settings(
        cls,
        store: TriageStore,
        settings: Settings,
        broadcaster: Optional[IncidentBroadcaster] = None,
        clock: Callable = utc_now
    ) -> "IncidentService":
        return cls(
            store=store,
            scorer=ConfidenceScorer(ScoringConfig.from_settings(settings), clock=clock),
            detector=DuplicateDetector.from_settings(settings, clock=clock),
            broadcaster=broadcaster or IncidentBroadcaster(topic=settings.broadcast_topic),
            clock=clock,
            code_attempts=settings.incident_code_max_attempts,
        )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def create_incident(
        self,
        incident_type: Union[IncidentType, str],
        description: str,
        latitude: float,
        longitude: float,
        address: Optional[str] = None,
        gps_accuracy: Optional[float] = None,
        image_url: Optional[str] = None,
        reporter_username: str = ANONYMOUS_USERNAME
    ) -> CreationResult:
        """
        Submit a new incident report.

        Args:
            incident_type: Type member or name
            description: Free-text description
            latitude: Report latitude
            longitude: Report longitude
            address: Optional address
            gps_accuracy: Optional GPS accuracy radius in meters
            image_url: Optional image reference from the image store
            reporter_username: Reporter, auto-provisioned if unknown

        Returns:
            CreationResult with the stored incident and potential duplicates
        """
        incident_type = parse_enum(IncidentType, incident_type, "incident type")
        validate_location(latitude, longitude)
        if not description or not description.strip():
            raise InvalidInputError("Description is required")
        if gps_accuracy is not None and gps_accuracy < 0:
            raise InvalidInputError("GPS accuracy cannot be negative")

        with self.store.transaction() as store:
            now = self.clock()
            duplicates = self.detector.find_duplicates(
                store, latitude, longitude, incident_type, now
            )

            reporter = get_or_create_public_user(store, reporter_username)

            incident = Incident(
                incident_id="",
                type=incident_type,
                description=description.strip(),
                latitude=latitude,
                longitude=longitude,
                address=address or None,
                gps_accuracy=gps_accuracy,
                image_url=image_url or None,
                status=IncidentStatus.UNVERIFIED,
                reporter_id=reporter.id,
                reporter_username=reporter.username,
                created_at=now,
                updated_at=now,
            )
            incident.confidence_score = self.scorer.score(incident, reporter.reputation, now)
            incident = self._insert_with_unique_code(store, incident)

            store.append_timeline(TimelineEntry(
                incident_id=incident.id,
                status=IncidentStatus.UNVERIFIED,
                notes=INITIAL_TIMELINE_NOTE,
                created_at=now,
            ))

        logger.info(
            f"New incident {incident.incident_id} ({incident.type.value}) at "
            f"({latitude}, {longitude}) score={incident.confidence_score}"
        )
        self.broadcaster.publish(incident)
        return CreationResult(incident=incident, potential_duplicates=duplicates)

    def _insert_with_unique_code(self, store: StoreSession, incident: Incident) -> Incident:
        for attempt in range(1, self.code_attempts + 1):
            incident.incident_id = self.code_generator(incident.created_at)
            try:
                return store.add_incident(incident)
            except IncidentCodeCollisionError:
                logger.warning(
                    f"Incident code collision on {incident.incident_id} "
                    f"(attempt {attempt}/{self.code_attempts})"
                )
                if attempt == self.code_attempts:
                    raise
        raise IncidentCodeCollisionError("Could not allocate an incident code")

    def find_duplicates(
        self,
        latitude: float,
        longitude: float,
        incident_type: Union[IncidentType, str]
    ) -> List[Incident]:
        """Point-in-time duplicate check without creating anything."""
        incident_type = parse_enum(IncidentType, incident_type, "incident type")
        validate_location(latitude, longitude)
        with self.store.transaction() as store:
            return self.detector.find_duplicates(store, latitude, longitude, incident_type)

    # ------------------------------------------------------------------
    # Confirmation
    # ------------------------------------------------------------------

    def confirm_incident(
        self,
        incident_id: int,
        latitude: float,
        longitude: float,
        username: str = ANONYMOUS_USERNAME
    ) -> Incident:
        """
        Corroborate an incident, once per user.

        Raises:
            NotFoundError: unknown incident
            DuplicateConfirmationError: user already confirmed it
        """
        validate_location(latitude, longitude)

        with self.store.transaction() as store:
            if store.get_incident(incident_id) is None:
                raise NotFoundError(f"Incident not found: {incident_id}")
            user = get_or_create_public_user(store, username)
            incident = self.tracker.confirm(store, incident_id, latitude, longitude, user)

        self.broadcaster.publish(incident)
        return incident

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def update_status(
        self,
        incident_id: int,
        status: Union[IncidentStatus, str],
        notes: Optional[str],
        acting_username: str
    ) -> Incident:
        """
        Move an incident through its lifecycle.

        Raises:
            InvalidInputError: unknown status
            NotFoundError: unknown incident or actor
            UnauthorizedError: actor may not reach the status
        """
        with self.store.transaction() as store:
            incident = self.lifecycle.transition(
                store, incident_id, status, notes, acting_username
            )

        self.broadcaster.publish(incident)
        return incident

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_incident(self, incident_id: int) -> Incident:
        with self.store.transaction() as store:
            incident = store.get_incident(incident_id)
        if incident is None:
            raise NotFoundError(f"Incident not found: {incident_id}")
        return incident

    def get_incident_by_code(self, code: str) -> Incident:
        with self.store.transaction() as store:
            incident = store.get_incident_by_code(code)
        if incident is None:
            raise NotFoundError(f"Incident not found: {code}")
        return incident

    def get_user(self, username: str) -> User:
        with self.store.transaction() as store:
            user = store.get_user(username)
        if user is None:
            raise NotFoundError(f"User not found: {username}")
        return user

    def query_incidents(self, query: IncidentQuery) -> List[Tuple[Incident, Optional[float]]]:
        """
        Browse incidents, optionally around a point.

        Returns:
            (incident, distance_km) pairs; distance is None without a location
        """
        if not 1 <= query.limit <= MAX_QUERY_LIMIT:
            raise InvalidInputError(f"Limit must be between 1 and {MAX_QUERY_LIMIT}")
        if query.offset < 0:
            raise InvalidInputError("Offset cannot be negative")
        if query.has_location:
            validate_location(query.latitude, query.longitude)
        if query.radius_km is not None and query.radius_km <= 0:
            raise InvalidInputError("Radius must be positive")

        with self.store.transaction() as store:
            if query.is_radius_search:
                return store.find_within_radius(
                    query.latitude,
                    query.longitude,
                    query.radius_km,
                    incident_type=query.type,
                    status=query.status,
                    min_confidence_score=query.min_confidence_score,
                    limit=query.limit,
                    offset=query.offset,
                )
            incidents = store.page_incidents(query.limit, query.offset)

        if not query.has_location:
            return [(incident, None) for incident in incidents]
        return [
            (
                incident,
                haversine_distance(
                    query.latitude, query.longitude, incident.latitude, incident.longitude
                ),
            )
            for incident in incidents
        ]

    def list_for_admin(self, status: Union[IncidentStatus, str, None] = None) -> List[Incident]:
        """All incidents, highest confidence first, oldest first among ties."""
        status = parse_enum(IncidentStatus, status, "status") if status else None
        with self.store.transaction() as store:
            return store.list_prioritized(status)

    def prioritized(
        self,
        status: Union[IncidentStatus, str, None] = None,
        limit: int = DEFAULT_QUERY_LIMIT
    ) -> List[Incident]:
        if limit < 1:
            raise InvalidInputError("Limit must be positive")
        status = parse_enum(IncidentStatus, status, "status") if status else None
        with self.store.transaction() as store:
            return store.list_prioritized(status, limit)

    def get_timeline(self, incident_id: int) -> List[TimelineEntry]:
        with self.store.transaction() as store:
            if store.get_incident(incident_id) is None:
                raise NotFoundError(f"Incident not found: {incident_id}")
            return store.list_timeline(incident_id)

    def dashboard_stats(self) -> DashboardStats:
        with self.store.transaction() as store:
            return self.dashboard.stats(store)

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    def seed_default_users(self) -> List[User]:
        with self.store.transaction() as store:
            return seed_default_users(store)
