"""
Dashboard rollups over the incident set.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Any, Optional

from src.core.constants import DASHBOARD_RECENT_LIMIT
from src.triage.models import IncidentStatus, IncidentType, Incident, utc_now
from src.triage.storage import StoreSession


@dataclass
class RecentIncident:
    """Row of the recent-incidents feed."""
    id: int
    incident_id: str
    type: IncidentType
    status: IncidentStatus
    confidence_score: int
    created_at: datetime

    @classmethod
    def from_incident(cls, incident: Incident) -> "RecentIncident":
        return cls(
            id=incident.id,
            incident_id=incident.incident_id,
            type=incident.type,
            status=incident.status,
            confidence_score=incident.confidence_score,
            created_at=incident.created_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "incident_id": self.incident_id,
            "type": self.type.value,
            "status": self.status.value,
            "confidence_score": self.confidence_score,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class DashboardStats:
    """Aggregate figures for the operations dashboard."""
    total_incidents: int
    verified_incidents: int
    resolved_incidents: int
    accuracy_rate: float
    average_response_time_hours: float
    recent_incidents: List[RecentIncident] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_incidents": self.total_incidents,
            "verified_incidents": self.verified_incidents,
            "resolved_incidents": self.resolved_incidents,
            "accuracy_rate": self.accuracy_rate,
            "average_response_time_hours": self.average_response_time_hours,
            "recent_incidents": [r.to_dict() for r in self.recent_incidents],
        }


class DashboardAggregator:
    """Read-only, computed on demand."""

    def __init__(self, recent_limit: int = DASHBOARD_RECENT_LIMIT, clock=utc_now):
        self.recent_limit = recent_limit
        self.clock = clock

    def stats(self, store: StoreSession, now: Optional[datetime] = None) -> DashboardStats:
        now = now or self.clock()

        total = store.count_incidents()
        verified = store.count_incidents(IncidentStatus.VERIFIED)
        resolved = store.count_incidents(IncidentStatus.RESOLVED)
        accuracy = (verified / total * 100) if total > 0 else 0.0

        return DashboardStats(
            total_incidents=total,
            verified_incidents=verified,
            resolved_incidents=resolved,
            accuracy_rate=accuracy,
            average_response_time_hours=store.mean_resolution_hours(now),
            recent_incidents=[
                RecentIncident.from_incident(i)
                for i in store.recent_incidents(self.recent_limit)
            ],
        )
