"""
Incident Triage - Triage Engine
Scoring, duplicate detection, confirmations, lifecycle and dashboard.
"""

from src.triage.models import (
    Incident,
    IncidentType,
    IncidentStatus,
    IncidentQuery,
    Role,
    ReputationTier,
    User,
    Confirmation,
    TimelineEntry,
)
from src.triage.scoring import ConfidenceScorer, ScoringConfig, confidence_level
from src.triage.duplicates import DuplicateDetector
from src.triage.confirmations import ConfirmationTracker
from src.triage.reputation import ReputationLadder
from src.triage.lifecycle import LifecycleStateMachine
from src.triage.dashboard import DashboardAggregator, DashboardStats
from src.triage.storage import TriageStore, StoreSession, InMemoryStore
from src.triage.service import IncidentService, CreationResult

__all__ = [
    # Model
    "Incident",
    "IncidentType",
    "IncidentStatus",
    "IncidentQuery",
    "Role",
    "ReputationTier",
    "User",
    "Confirmation",
    "TimelineEntry",
    # Engine
    "ConfidenceScorer",
    "ScoringConfig",
    "confidence_level",
    "DuplicateDetector",
    "ConfirmationTracker",
    "ReputationLadder",
    "LifecycleStateMachine",
    "DashboardAggregator",
    "DashboardStats",
    # Storage
    "TriageStore",
    "StoreSession",
    "InMemoryStore",
    # Service
    "IncidentService",
    "CreationResult",
]
