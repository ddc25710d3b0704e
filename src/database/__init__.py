"""
Database module for Incident Triage
SQLAlchemy persistence for incidents, users, confirmations and timeline
"""

from .connection import DatabaseConnection
from .models import (
    Base,
    UserRecord,
    IncidentRecord,
    ConfirmationRecord,
    TimelineRecord
)
from .repository import SqlStore, SqlStoreSession

__all__ = [
    "DatabaseConnection",
    "Base",
    "UserRecord",
    "IncidentRecord",
    "ConfirmationRecord",
    "TimelineRecord",
    "SqlStore",
    "SqlStoreSession"
]
