"""
Incident Triage - Core Utilities
Central configuration, errors, and geospatial helpers.
"""

from src.core.config import settings, get_settings, Settings
from src.core.exceptions import (
    TriageError,
    NotFoundError,
    UnauthorizedError,
    DuplicateConfirmationError,
    InvalidInputError,
    IncidentCodeCollisionError,
    UsernameTakenError,
)
from src.core.geo_utils import (
    haversine_distance,
    meters_to_km,
    is_valid_coordinate,
)

__all__ = [
    "settings",
    "get_settings",
    "Settings",
    "TriageError",
    "NotFoundError",
    "UnauthorizedError",
    "DuplicateConfirmationError",
    "InvalidInputError",
    "IncidentCodeCollisionError",
    "UsernameTakenError",
    "haversine_distance",
    "meters_to_km",
    "is_valid_coordinate",
]
