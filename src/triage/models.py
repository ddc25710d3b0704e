"""
Domain model for the incident triage engine.
Incidents, users, confirmations and the append-only timeline.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, Type, TypeVar, Union

from src.core.constants import CONFIDENCE_LEVELS, DEFAULT_QUERY_LIMIT
from src.core.exceptions import InvalidInputError

E = TypeVar("E", bound=Enum)


def utc_now() -> datetime:
    """Current UTC time as a naive datetime (storage-friendly)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class IncidentType(str, Enum):
    """Kind of reported incident."""
    ACCIDENT = "ACCIDENT"
    MEDICAL = "MEDICAL"
    FIRE = "FIRE"
    INFRASTRUCTURE = "INFRASTRUCTURE"
    CRIME = "CRIME"


class IncidentStatus(str, Enum):
    """Lifecycle status of an incident."""
    UNVERIFIED = "UNVERIFIED"
    VERIFIED = "VERIFIED"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    FALSE = "FALSE"


class Role(str, Enum):
    """Account role."""
    PUBLIC = "PUBLIC"
    RESPONDER = "RESPONDER"
    ADMIN = "ADMIN"


class ReputationTier(str, Enum):
    """Reporter trust ladder, lowest first."""
    NEW = "NEW"
    RELIABLE = "RELIABLE"
    TRUSTED = "TRUSTED"


def parse_enum(enum_cls: Type[E], value: Union[str, E, None], label: str) -> E:
    """
    Coerce a name (case-insensitive) or member into an enum member.

    Raises:
        InvalidInputError: value is missing or not a member name
    """
    if isinstance(value, enum_cls):
        return value
    if value is None or not isinstance(value, str):
        raise InvalidInputError(f"Missing {label}")
    try:
        return enum_cls[value.strip().upper()]
    except KeyError:
        allowed = ", ".join(member.name for member in enum_cls)
        raise InvalidInputError(f"Invalid {label}: {value} (expected one of {allowed})")


def confidence_level(score: int) -> str:
    """Label a confidence score as HIGH, MEDIUM or LOW."""
    for level, lower_bound in CONFIDENCE_LEVELS.items():
        if score >= lower_bound:
            return level
    return "LOW"


@dataclass
class User:
    """Reporter or staff account."""
    username: str
    id: Optional[int] = None
    email: Optional[str] = None
    role: Role = Role.PUBLIC
    reputation: ReputationTier = ReputationTier.NEW
    verified_reports: int = 0
    false_reports: int = 0
    active: bool = True
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role.value,
            "reputation": self.reputation.value,
            "verified_reports": self.verified_reports,
            "false_reports": self.false_reports,
            "active": self.active,
        }


@dataclass
class Incident:
    """
    Incident reported by a member of the public.

    `id` is the storage key; `incident_id` is the public, shareable code.
    """
    incident_id: str
    type: IncidentType
    description: str
    latitude: float
    longitude: float
    id: Optional[int] = None

    # Report details
    address: Optional[str] = None
    gps_accuracy: Optional[float] = None  # meters
    image_url: Optional[str] = None

    # Triage state
    status: IncidentStatus = IncidentStatus.UNVERIFIED
    confidence_score: int = 0
    confirmation_count: int = 0
    admin_notes: Optional[str] = None

    # Reporter
    reporter_id: Optional[int] = None
    reporter_username: Optional[str] = None

    # Timestamps
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def has_image(self) -> bool:
        return bool(self.image_url)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "incident_id": self.incident_id,
            "type": self.type.value,
            "description": self.description,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "address": self.address,
            "gps_accuracy": self.gps_accuracy,
            "image_url": self.image_url,
            "status": self.status.value,
            "confidence_score": self.confidence_score,
            "confidence_level": confidence_level(self.confidence_score),
            "confirmation_count": self.confirmation_count,
            "reporter_username": self.reporter_username,
            "admin_notes": self.admin_notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class Confirmation:
    """Witness corroboration of an incident, one per (incident, user)."""
    incident_id: int
    user_id: int
    latitude: float
    longitude: float
    id: Optional[int] = None
    created_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class TimelineEntry:
    """Immutable audit record of a status change."""
    incident_id: int
    status: IncidentStatus
    notes: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    id: Optional[int] = None
    sequence: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "notes": self.notes,
            "updated_by": self.updated_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class IncidentQuery:
    """Filters for browsing incidents around a point."""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius_km: Optional[float] = None
    type: Optional[IncidentType] = None
    status: Optional[IncidentStatus] = None
    min_confidence_score: Optional[int] = None
    limit: int = DEFAULT_QUERY_LIMIT
    offset: int = 0

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def is_radius_search(self) -> bool:
        return self.has_location and self.radius_km is not None
