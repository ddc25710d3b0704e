"""
SQLAlchemy-backed triage storage.

One SQLAlchemy session per unit of work. Row locks (SELECT ... FOR UPDATE)
serialize confirmations and status changes on PostgreSQL; unique
constraints back the code and confirmation guarantees on every backend.
"""

import logging
import math
from contextlib import contextmanager
from datetime import datetime
from typing import Optional, List, Tuple, Iterator

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.core.exceptions import (
    DuplicateConfirmationError,
    IncidentCodeCollisionError,
    UsernameTakenError,
)
from src.core.geo_utils import EARTH_RADIUS_KM
from src.triage.models import (
    Incident,
    IncidentStatus,
    IncidentType,
    User,
    Confirmation,
    TimelineEntry,
)
from src.triage.storage import (
    TriageStore,
    StoreSession,
    RESPONSE_TIME_STATUSES,
    filter_duplicates,
    filter_within_radius,
    average_resolution_hours,
)

from .connection import DatabaseConnection
from .models import IncidentRecord, UserRecord, ConfirmationRecord, TimelineRecord

logger = logging.getLogger(__name__)

KM_PER_DEGREE_LATITUDE = math.pi * EARTH_RADIUS_KM / 180.0


def _latitude_window(latitude: float, distance_km: float) -> Tuple[float, float]:
    """Latitude band that contains every point within distance_km."""
    delta = distance_km / KM_PER_DEGREE_LATITUDE
    return latitude - delta, latitude + delta


class SqlStoreSession(StoreSession):
    """StoreSession over one open SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    # Incidents

    def _incident_record(self, incident_id: int, for_update: bool = False) -> Optional[IncidentRecord]:
        stmt = select(IncidentRecord).where(IncidentRecord.id == incident_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def add_incident(self, incident: Incident) -> Incident:
        if self.get_incident_by_code(incident.incident_id) is not None:
            raise IncidentCodeCollisionError(
                f"Incident code already exists: {incident.incident_id}"
            )

        record = IncidentRecord.from_domain(incident)
        try:
            with self.session.begin_nested():
                self.session.add(record)
        except IntegrityError as e:
            raise IncidentCodeCollisionError(
                f"Incident code already exists: {incident.incident_id}"
            ) from e
        return record.to_domain()

    def get_incident(self, incident_id: int, for_update: bool = False) -> Optional[Incident]:
        record = self._incident_record(incident_id, for_update)
        return record.to_domain() if record else None

    def get_incident_by_code(self, code: str) -> Optional[Incident]:
        stmt = select(IncidentRecord).where(IncidentRecord.incident_id == code)
        record = self.session.execute(stmt).scalar_one_or_none()
        return record.to_domain() if record else None

    def save_incident(self, incident: Incident) -> Incident:
        record = self.session.get(IncidentRecord, incident.id)
        if record is None:
            raise KeyError(f"Unknown incident id: {incident.id}")
        record.apply(incident)
        self.session.flush()
        return incident

    def page_incidents(self, limit: int, offset: int) -> List[Incident]:
        stmt = select(IncidentRecord).order_by(IncidentRecord.id).offset(offset).limit(limit)
        return [r.to_domain() for r in self.session.execute(stmt).scalars()]

    def list_prioritized(
        self,
        status: Optional[IncidentStatus] = None,
        limit: Optional[int] = None
    ) -> List[Incident]:
        stmt = select(IncidentRecord)
        if status is not None:
            stmt = stmt.where(IncidentRecord.status == status)
        stmt = stmt.order_by(
            IncidentRecord.confidence_score.desc(),
            IncidentRecord.created_at.asc(),
            IncidentRecord.id.asc(),
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [r.to_domain() for r in self.session.execute(stmt).scalars()]

    def count_incidents(self, status: Optional[IncidentStatus] = None) -> int:
        stmt = select(func.count(IncidentRecord.id))
        if status is not None:
            stmt = stmt.where(IncidentRecord.status == status)
        return self.session.execute(stmt).scalar_one()

    def recent_incidents(self, limit: int) -> List[Incident]:
        stmt = (
            select(IncidentRecord)
            .order_by(IncidentRecord.created_at.desc(), IncidentRecord.id.desc())
            .limit(limit)
        )
        return [r.to_domain() for r in self.session.execute(stmt).scalars()]

    # Users

    def get_user(self, username: str, for_update: bool = False) -> Optional[User]:
        stmt = select(UserRecord).where(UserRecord.username == username)
        if for_update:
            stmt = stmt.with_for_update()
        record = self.session.execute(stmt).scalar_one_or_none()
        return record.to_domain() if record else None

    def get_user_by_id(self, user_id: int, for_update: bool = False) -> Optional[User]:
        stmt = select(UserRecord).where(UserRecord.id == user_id)
        if for_update:
            stmt = stmt.with_for_update()
        record = self.session.execute(stmt).scalar_one_or_none()
        return record.to_domain() if record else None

    def add_user(self, user: User) -> User:
        record = UserRecord(username=user.username, created_at=user.created_at)
        record.apply(user)
        try:
            with self.session.begin_nested():
                self.session.add(record)
        except IntegrityError as e:
            raise UsernameTakenError(f"Username already exists: {user.username}") from e
        return record.to_domain()

    def save_user(self, user: User) -> User:
        stmt = select(UserRecord).where(UserRecord.username == user.username)
        record = self.session.execute(stmt).scalar_one_or_none()
        if record is None:
            raise KeyError(f"Unknown user: {user.username}")
        record.apply(user)
        self.session.flush()
        return user

    # Confirmations

    def get_confirmation(self, incident_id: int, user_id: int) -> Optional[Confirmation]:
        stmt = select(ConfirmationRecord).where(
            ConfirmationRecord.incident_id == incident_id,
            ConfirmationRecord.user_id == user_id,
        )
        record = self.session.execute(stmt).scalar_one_or_none()
        return record.to_domain() if record else None

    def add_confirmation(self, confirmation: Confirmation) -> Confirmation:
        record = ConfirmationRecord(
            incident_id=confirmation.incident_id,
            user_id=confirmation.user_id,
            latitude=confirmation.latitude,
            longitude=confirmation.longitude,
            created_at=confirmation.created_at,
        )
        try:
            with self.session.begin_nested():
                self.session.add(record)
        except IntegrityError as e:
            raise DuplicateConfirmationError("Already confirmed this incident") from e
        return record.to_domain()

    def count_confirmations(self, incident_id: int) -> int:
        stmt = select(func.count(ConfirmationRecord.id)).where(
            ConfirmationRecord.incident_id == incident_id
        )
        return self.session.execute(stmt).scalar_one()

    # Timeline

    def append_timeline(self, entry: TimelineEntry) -> TimelineEntry:
        last = self.session.execute(
            select(func.max(TimelineRecord.sequence)).where(
                TimelineRecord.incident_id == entry.incident_id
            )
        ).scalar()

        updated_by_id = None
        if entry.updated_by:
            updated_by_id = self.session.execute(
                select(UserRecord.id).where(UserRecord.username == entry.updated_by)
            ).scalar_one_or_none()

        record = TimelineRecord(
            incident_id=entry.incident_id,
            sequence=(last or 0) + 1,
            status=entry.status,
            notes=entry.notes,
            updated_by_id=updated_by_id,
            created_at=entry.created_at,
        )
        self.session.add(record)
        self.session.flush()
        return record.to_domain()

    def list_timeline(self, incident_id: int) -> List[TimelineEntry]:
        stmt = (
            select(TimelineRecord)
            .where(TimelineRecord.incident_id == incident_id)
            .order_by(TimelineRecord.created_at, TimelineRecord.sequence)
        )
        return [r.to_domain() for r in self.session.execute(stmt).scalars()]

    # Geospatial queries

    def _within_latitude_band(self, stmt, latitude: float, distance_km: float):
        low, high = _latitude_window(latitude, distance_km)
        return stmt.where(IncidentRecord.latitude.between(low, high))

    def find_duplicate_candidates(
        self,
        latitude: float,
        longitude: float,
        incident_type: IncidentType,
        created_after: datetime,
        max_distance_km: float
    ) -> List[Incident]:
        stmt = select(IncidentRecord).where(
            IncidentRecord.type == incident_type,
            IncidentRecord.status != IncidentStatus.FALSE,
            IncidentRecord.created_at >= created_after,
        )
        stmt = self._within_latitude_band(stmt, latitude, max_distance_km)
        candidates = [r.to_domain() for r in self.session.execute(stmt).scalars()]
        return filter_duplicates(
            candidates, latitude, longitude, incident_type, created_after, max_distance_km
        )

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
        stmt = select(IncidentRecord)
        if incident_type is not None:
            stmt = stmt.where(IncidentRecord.type == incident_type)
        if status is not None:
            stmt = stmt.where(IncidentRecord.status == status)
        if min_confidence_score is not None:
            stmt = stmt.where(IncidentRecord.confidence_score >= min_confidence_score)
        stmt = self._within_latitude_band(stmt, latitude, radius_km)

        candidates = [r.to_domain() for r in self.session.execute(stmt).scalars()]
        results = filter_within_radius(candidates, latitude, longitude, radius_km)
        return results[offset:offset + limit]

    # Aggregates

    def mean_resolution_hours(self, now: datetime) -> float:
        first_resolved = dict(
            self.session.execute(
                select(TimelineRecord.incident_id, func.min(TimelineRecord.created_at))
                .where(TimelineRecord.status == IncidentStatus.RESOLVED)
                .group_by(TimelineRecord.incident_id)
            ).all()
        )
        stmt = select(IncidentRecord).where(IncidentRecord.status.in_(RESPONSE_TIME_STATUSES))
        incidents = [r.to_domain() for r in self.session.execute(stmt).scalars()]
        return average_resolution_hours(incidents, first_resolved, now)


class SqlStore(TriageStore):
    """TriageStore backed by a DatabaseConnection."""

    def __init__(self, db: DatabaseConnection):
        self.db = db

    @classmethod
    def from_url(cls, database_url: str, create_tables: bool = True) -> "SqlStore":
        db = DatabaseConnection(database_url=database_url)
        if create_tables:
            db.create_tables()
        return cls(db)

    @contextmanager
    def transaction(self) -> Iterator[SqlStoreSession]:
        with self.db.get_session() as session:
            yield SqlStoreSession(session)
