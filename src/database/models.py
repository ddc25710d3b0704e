"""
SQLAlchemy models for the incident triage engine
Plain latitude/longitude columns; distances are great-circle, computed in Python
"""

from sqlalchemy import (
    Column, Integer, Float, String, Text, Boolean,
    DateTime, ForeignKey, Index, UniqueConstraint, Enum as SQLEnum
)
from sqlalchemy.orm import declarative_base, relationship

from src.triage.models import (
    Incident,
    IncidentStatus,
    IncidentType,
    Role,
    ReputationTier,
    User,
    Confirmation,
    TimelineEntry,
    utc_now,
)

Base = declarative_base()


class UserRecord(Base):
    """
    Reporter or staff account.

    Public reporters are auto-provisioned without a credential.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), nullable=False, unique=True)
    email = Column(String(100))
    password_hash = Column(String(255))

    role = Column(SQLEnum(Role), nullable=False, default=Role.PUBLIC)
    reputation = Column(SQLEnum(ReputationTier), nullable=False, default=ReputationTier.NEW)
    verified_reports = Column(Integer, nullable=False, default=0)
    false_reports = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=utc_now)

    def __repr__(self):
        return f"<UserRecord({self.id}, {self.username}, role={self.role.value})>"

    def to_domain(self) -> User:
        return User(
            id=self.id,
            username=self.username,
            email=self.email,
            role=self.role,
            reputation=self.reputation,
            verified_reports=self.verified_reports,
            false_reports=self.false_reports,
            active=self.active,
            created_at=self.created_at,
        )

    def apply(self, user: User) -> None:
        self.email = user.email
        self.role = user.role
        self.reputation = user.reputation
        self.verified_reports = user.verified_reports
        self.false_reports = user.false_reports
        self.active = user.active


class IncidentRecord(Base):
    """
    Incident reported by the public.

    `incident_id` is the shareable public code.
    """
    __tablename__ = "incidents"

    id = Column(Integer, primary_key=True, index=True)
    incident_id = Column(String(32), nullable=False, unique=True)

    # Report details
    type = Column(SQLEnum(IncidentType), nullable=False)
    description = Column(Text, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    address = Column(String(500))
    gps_accuracy = Column(Float)  # meters
    image_url = Column(String(500))

    # Triage state
    status = Column(SQLEnum(IncidentStatus), nullable=False, default=IncidentStatus.UNVERIFIED)
    confidence_score = Column(Integer, nullable=False, default=0)
    confirmation_count = Column(Integer, nullable=False, default=0)
    admin_notes = Column(Text)

    # Reporter
    reporter_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    reporter = relationship("UserRecord")

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now)

    timeline = relationship(
        "TimelineRecord",
        back_populates="incident",
        order_by="TimelineRecord.sequence",
    )

    __table_args__ = (
        Index("idx_incident_location", latitude, longitude),
        Index("idx_incident_status", status),
        Index("idx_incident_created_at", created_at),
        Index("idx_incident_type_created_at", type, created_at),
    )

    def __repr__(self):
        return f"<IncidentRecord({self.incident_id}, {self.type.value}, status={self.status.value})>"

    def to_domain(self) -> Incident:
        return Incident(
            id=self.id,
            incident_id=self.incident_id,
            type=self.type,
            description=self.description,
            latitude=self.latitude,
            longitude=self.longitude,
            address=self.address,
            gps_accuracy=self.gps_accuracy,
            image_url=self.image_url,
            status=self.status,
            confidence_score=self.confidence_score,
            confirmation_count=self.confirmation_count,
            admin_notes=self.admin_notes,
            reporter_id=self.reporter_id,
            reporter_username=self.reporter.username if self.reporter else None,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_domain(cls, incident: Incident) -> "IncidentRecord":
        record = cls(
            incident_id=incident.incident_id,
            type=incident.type,
            description=incident.description,
            latitude=incident.latitude,
            longitude=incident.longitude,
            reporter_id=incident.reporter_id,
            created_at=incident.created_at,
        )
        record.apply(incident)
        return record

    def apply(self, incident: Incident) -> None:
        """Copy mutable fields from the domain object."""
        self.address = incident.address
        self.gps_accuracy = incident.gps_accuracy
        self.image_url = incident.image_url
        self.status = incident.status
        self.confidence_score = incident.confidence_score
        self.confirmation_count = incident.confirmation_count
        self.admin_notes = incident.admin_notes
        self.updated_at = incident.updated_at


class ConfirmationRecord(Base):
    """Witness confirmation; one per (incident, user)."""
    __tablename__ = "confirmations"

    id = Column(Integer, primary_key=True, index=True)
    incident_id = Column(Integer, ForeignKey("incidents.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    # Where the confirming user was
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)

    created_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint("incident_id", "user_id", name="uq_confirmation_incident_user"),
    )

    def to_domain(self) -> Confirmation:
        return Confirmation(
            id=self.id,
            incident_id=self.incident_id,
            user_id=self.user_id,
            latitude=self.latitude,
            longitude=self.longitude,
            created_at=self.created_at,
        )


class TimelineRecord(Base):
    """Append-only status history. Rows are never updated."""
    __tablename__ = "incident_timeline"

    id = Column(Integer, primary_key=True, index=True)
    incident_id = Column(Integer, ForeignKey("incidents.id"), nullable=False)
    sequence = Column(Integer, nullable=False)

    status = Column(SQLEnum(IncidentStatus), nullable=False)
    notes = Column(Text)
    updated_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utc_now)

    incident = relationship("IncidentRecord", back_populates="timeline")
    updated_by = relationship("UserRecord")

    __table_args__ = (
        UniqueConstraint("incident_id", "sequence", name="uq_timeline_incident_sequence"),
        Index("idx_timeline_incident_status", incident_id, status),
    )

    def to_domain(self) -> TimelineEntry:
        return TimelineEntry(
            id=self.id,
            incident_id=self.incident_id,
            sequence=self.sequence,
            status=self.status,
            notes=self.notes,
            updated_by=self.updated_by.username if self.updated_by else None,
            created_at=self.created_at,
        )
