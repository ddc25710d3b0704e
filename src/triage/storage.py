"""
Storage contract for the triage engine and an in-memory implementation.

Every mutating operation runs inside ``store.transaction()``. The yielded
session exposes the data-access methods below; implementations guarantee
that a unit either commits entirely or leaves no trace.
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from itertools import count
from typing import Optional, List, Dict, Tuple, Iterator, Iterable, ContextManager

from src.core.exceptions import (
    DuplicateConfirmationError,
    IncidentCodeCollisionError,
    UsernameTakenError,
)
from src.core.geo_utils import haversine_distance
from src.triage.models import (
    Incident,
    IncidentStatus,
    IncidentType,
    User,
    Confirmation,
    TimelineEntry,
)

logger = logging.getLogger(__name__)

RESPONSE_TIME_STATUSES = (IncidentStatus.RESOLVED, IncidentStatus.IN_PROGRESS)


class StoreSession(ABC):
    """Data access available inside a unit of work."""

    # Incidents

    @abstractmethod
    def add_incident(self, incident: Incident) -> Incident:
        """Insert a new incident and assign its id.

        Raises:
            IncidentCodeCollisionError: public code already in use
        """

    @abstractmethod
    def get_incident(self, incident_id: int, for_update: bool = False) -> Optional[Incident]:
        """Fetch an incident by storage id, optionally locking it."""

    @abstractmethod
    def get_incident_by_code(self, code: str) -> Optional[Incident]:
        """Fetch an incident by public code."""

    @abstractmethod
    def save_incident(self, incident: Incident) -> Incident:
        """Persist changes to an existing incident."""

    @abstractmethod
    def page_incidents(self, limit: int, offset: int) -> List[Incident]:
        """Incidents in id order."""

    @abstractmethod
    def list_prioritized(
        self,
        status: Optional[IncidentStatus] = None,
        limit: Optional[int] = None
    ) -> List[Incident]:
        """Incidents by confidence descending, then oldest first."""

    @abstractmethod
    def count_incidents(self, status: Optional[IncidentStatus] = None) -> int:
        """Count all incidents, or those in one status."""

    @abstractmethod
    def recent_incidents(self, limit: int) -> List[Incident]:
        """Most recently created incidents first."""

    # Users

    @abstractmethod
    def get_user(self, username: str, for_update: bool = False) -> Optional[User]:
        """Fetch a user by username."""

    @abstractmethod
    def get_user_by_id(self, user_id: int, for_update: bool = False) -> Optional[User]:
        """Fetch a user by id."""

    @abstractmethod
    def add_user(self, user: User) -> User:
        """Insert a new user and assign its id; UsernameTakenError if the name is held."""

    @abstractmethod
    def save_user(self, user: User) -> User:
        """Persist changes to an existing user."""

    # Confirmations

    @abstractmethod
    def get_confirmation(self, incident_id: int, user_id: int) -> Optional[Confirmation]:
        """Look up the confirmation for an (incident, user) pair."""

    @abstractmethod
    def add_confirmation(self, confirmation: Confirmation) -> Confirmation:
        """Insert a confirmation.

        Raises:
            DuplicateConfirmationError: pair already present
        """

    @abstractmethod
    def count_confirmations(self, incident_id: int) -> int:
        """Number of distinct users who confirmed an incident."""

    # Timeline

    @abstractmethod
    def append_timeline(self, entry: TimelineEntry) -> TimelineEntry:
        """Append an entry; never updates existing ones."""

    @abstractmethod
    def list_timeline(self, incident_id: int) -> List[TimelineEntry]:
        """Entries of one incident in chronological order."""

    # Geospatial queries

    @abstractmethod
    def find_duplicate_candidates(
        self,
        latitude: float,
        longitude: float,
        incident_type: IncidentType,
        created_after: datetime,
        max_distance_km: float
    ) -> List[Incident]:
        """Same-type, non-FALSE incidents since a cutoff within a distance, newest first."""

    @abstractmethod
    def find_within_radius(
        self,
        latitude: float,
        longitude: float,
        radius_km: float,
        incident_type: Optional[IncidentType] = None,
        status: Optional[IncidentStatus] = None,
        min_confidence_score: Optional[int] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[Tuple[Incident, float]]:
        """(incident, distance_km) pairs by distance, then newest first."""

    # Aggregates

    @abstractmethod
    def mean_resolution_hours(self, now: datetime) -> float:
        """Average hours from creation to first RESOLVED entry (or now)."""


class TriageStore(ABC):
    """A storage backend that hands out atomic units of work."""

    @abstractmethod
    def transaction(self) -> ContextManager[StoreSession]:
        """Context manager yielding a StoreSession; commits on success."""


def filter_duplicates(
    incidents: Iterable[Incident],
    latitude: float,
    longitude: float,
    incident_type: IncidentType,
    created_after: datetime,
    max_distance_km: float
) -> List[Incident]:
    """Apply the duplicate-candidate rules to already-loaded incidents."""
    matches = [
        incident for incident in incidents
        if incident.type == incident_type
        and incident.status != IncidentStatus.FALSE
        and incident.created_at >= created_after
        and haversine_distance(
            latitude, longitude, incident.latitude, incident.longitude
        ) <= max_distance_km
    ]
    matches.sort(key=lambda i: i.created_at, reverse=True)
    return matches


def filter_within_radius(
    incidents: Iterable[Incident],
    latitude: float,
    longitude: float,
    radius_km: float,
    incident_type: Optional[IncidentType] = None,
    status: Optional[IncidentStatus] = None,
    min_confidence_score: Optional[int] = None
) -> List[Tuple[Incident, float]]:
    """Apply radius/type/status/score filters, ordered by distance then recency."""
    results = []
    for incident in incidents:
        if incident_type is not None and incident.type != incident_type:
            continue
        if status is not None and incident.status != status:
            continue
        if min_confidence_score is not None and incident.confidence_score < min_confidence_score:
            continue
        distance = haversine_distance(latitude, longitude, incident.latitude, incident.longitude)
        if distance <= radius_km:
            results.append((incident, distance))

    # Newest first among equal distances: sort by recency, then stable sort by distance
    results.sort(key=lambda pair: pair[0].created_at, reverse=True)
    results.sort(key=lambda pair: pair[1])
    return results


def average_resolution_hours(
    incidents: Iterable[Incident],
    first_resolved_at: Dict[int, datetime],
    now: datetime
) -> float:
    """Mean of (first RESOLVED timestamp, or now) minus creation, in hours."""
    durations = []
    for incident in incidents:
        if incident.status not in RESPONSE_TIME_STATUSES:
            continue
        finished = first_resolved_at.get(incident.id, now)
        durations.append((finished - incident.created_at).total_seconds() / 3600.0)

    if not durations:
        return 0.0
    return sum(durations) / len(durations)


class InMemoryStore(TriageStore, StoreSession):
    """
    Process-local storage.

    A single re-entrant lock serializes units of work; state captured at
    the start of the outermost unit is restored if it raises.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._depth = 0

        self._incidents: Dict[int, Incident] = {}
        self._codes: Dict[str, int] = {}
        self._users: Dict[str, User] = {}
        self._user_ids: Dict[int, str] = {}
        self._confirmations: Dict[Tuple[int, int], Confirmation] = {}
        self._timeline: Dict[int, List[TimelineEntry]] = {}

        self._incident_ids = count(1)
        self._user_seq = count(1)
        self._confirmation_ids = count(1)
        self._timeline_ids = count(1)

    @contextmanager
    def transaction(self) -> Iterator["InMemoryStore"]:
        with self._lock:
            snapshot = self._snapshot() if self._depth == 0 else None
            self._depth += 1
            try:
                yield self
            except BaseException:
                if snapshot is not None:
                    self._restore(snapshot)
                raise
            finally:
                self._depth -= 1

    def _snapshot(self) -> tuple:
        return (
            dict(self._incidents),
            dict(self._codes),
            dict(self._users),
            dict(self._user_ids),
            dict(self._confirmations),
            {key: list(entries) for key, entries in self._timeline.items()},
        )

    def _restore(self, snapshot: tuple) -> None:
        (
            self._incidents,
            self._codes,
            self._users,
            self._user_ids,
            self._confirmations,
            self._timeline,
        ) = snapshot
        logger.debug("In-memory transaction rolled back")

    # Incidents

    def add_incident(self, incident: Incident) -> Incident:
        with self._lock:
            if incident.incident_id in self._codes:
                raise IncidentCodeCollisionError(
                    f"Incident code already exists: {incident.incident_id}"
                )
            stored = copy.copy(incident)
            stored.id = next(self._incident_ids)
            self._incidents[stored.id] = stored
            self._codes[stored.incident_id] = stored.id
            return copy.copy(stored)

    def get_incident(self, incident_id: int, for_update: bool = False) -> Optional[Incident]:
        incident = self._incidents.get(incident_id)
        return copy.copy(incident) if incident else None

    def get_incident_by_code(self, code: str) -> Optional[Incident]:
        incident_id = self._codes.get(code)
        return self.get_incident(incident_id) if incident_id is not None else None

    def save_incident(self, incident: Incident) -> Incident:
        with self._lock:
            if incident.id not in self._incidents:
                raise KeyError(f"Unknown incident id: {incident.id}")
            self._incidents[incident.id] = copy.copy(incident)
            return incident

    def page_incidents(self, limit: int, offset: int) -> List[Incident]:
        ordered = sorted(self._incidents.values(), key=lambda i: i.id)
        return [copy.copy(i) for i in ordered[offset:offset + limit]]

    def list_prioritized(
        self,
        status: Optional[IncidentStatus] = None,
        limit: Optional[int] = None
    ) -> List[Incident]:
        incidents = [
            i for i in self._incidents.values()
            if status is None or i.status == status
        ]
        incidents.sort(key=lambda i: (-i.confidence_score, i.created_at, i.id))
        if limit is not None:
            incidents = incidents[:limit]
        return [copy.copy(i) for i in incidents]

    def count_incidents(self, status: Optional[IncidentStatus] = None) -> int:
        if status is None:
            return len(self._incidents)
        return sum(1 for i in self._incidents.values() if i.status == status)

    def recent_incidents(self, limit: int) -> List[Incident]:
        ordered = sorted(
            self._incidents.values(),
            key=lambda i: (i.created_at, i.id),
            reverse=True
        )
        return [copy.copy(i) for i in ordered[:limit]]

    # Users

    def get_user(self, username: str, for_update: bool = False) -> Optional[User]:
        user = self._users.get(username)
        return copy.copy(user) if user else None

    def get_user_by_id(self, user_id: int, for_update: bool = False) -> Optional[User]:
        username = self._user_ids.get(user_id)
        return self.get_user(username) if username is not None else None

    def add_user(self, user: User) -> User:
        with self._lock:
            if user.username in self._users:
                raise UsernameTakenError(f"Username already exists: {user.username}")
            stored = copy.copy(user)
            stored.id = next(self._user_seq)
            self._users[stored.username] = stored
            self._user_ids[stored.id] = stored.username
            return copy.copy(stored)

    def save_user(self, user: User) -> User:
        with self._lock:
            if user.username not in self._users:
                raise KeyError(f"Unknown user: {user.username}")
            self._users[user.username] = copy.copy(user)
            return user

    # Confirmations

    def get_confirmation(self, incident_id: int, user_id: int) -> Optional[Confirmation]:
        confirmation = self._confirmations.get((incident_id, user_id))
        return copy.copy(confirmation) if confirmation else None

    def add_confirmation(self, confirmation: Confirmation) -> Confirmation:
        with self._lock:
            key = (confirmation.incident_id, confirmation.user_id)
            if key in self._confirmations:
                raise DuplicateConfirmationError("Already confirmed this incident")
            stored = copy.copy(confirmation)
            stored.id = next(self._confirmation_ids)
            self._confirmations[key] = stored
            return copy.copy(stored)

    def count_confirmations(self, incident_id: int) -> int:
        return sum(1 for (iid, _) in self._confirmations if iid == incident_id)

    # Timeline

    def append_timeline(self, entry: TimelineEntry) -> TimelineEntry:
        with self._lock:
            entries = self._timeline.setdefault(entry.incident_id, [])
            stored = TimelineEntry(
                incident_id=entry.incident_id,
                status=entry.status,
                notes=entry.notes,
                updated_by=entry.updated_by,
                created_at=entry.created_at,
                id=next(self._timeline_ids),
                sequence=len(entries) + 1,
            )
            entries.append(stored)
            return stored

    def list_timeline(self, incident_id: int) -> List[TimelineEntry]:
        entries = self._timeline.get(incident_id, [])
        return sorted(entries, key=lambda e: (e.created_at, e.sequence))

    # Geospatial queries

    def find_duplicate_candidates(
        self,
        latitude: float,
        longitude: float,
        incident_type: IncidentType,
        created_after: datetime,
        max_distance_km: float
    ) -> List[Incident]:
        matches = filter_duplicates(
            self._incidents.values(),
            latitude, longitude, incident_type, created_after, max_distance_km
        )
        return [copy.copy(i) for i in matches]

    def find_within_radius(
        self,
        latitude: float,
        longitude: float,
        radius_km: float,
        incident_type: Optional[IncidentType] = None,
        status: Optional[IncidentStatus] = None,
        min_confidence_score: Optional[int] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[Tuple[Incident, float]]:
        results = filter_within_radius(
            self._incidents.values(),
            latitude, longitude, radius_km,
            incident_type, status, min_confidence_score
        )
        return [(copy.copy(i), d) for i, d in results[offset:offset + limit]]

    # Aggregates

    def mean_resolution_hours(self, now: datetime) -> float:
        first_resolved = {}
        for incident_id, entries in self._timeline.items():
            resolved = [e.created_at for e in entries if e.status == IncidentStatus.RESOLVED]
            if resolved:
                first_resolved[incident_id] = min(resolved)
        return average_resolution_hours(self._incidents.values(), first_resolved, now)
