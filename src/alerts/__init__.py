"""
Incident Triage - Alerts Module
Realtime broadcast of incident changes to subscribers.
"""

from src.alerts.broadcaster import (
    BroadcastSink,
    LoggingSink,
    RecordingSink,
    ConnectionManager,
    IncidentBroadcaster,
    DEFAULT_TOPIC,
)

__all__ = [
    "BroadcastSink",
    "LoggingSink",
    "RecordingSink",
    "ConnectionManager",
    "IncidentBroadcaster",
    "DEFAULT_TOPIC",
]
