"""
Geospatial duplicate detection for new reports.

Advisory only: results are attached to the creation response so the
reporter can see likely duplicates. Nothing is blocked or merged.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from src.core.config import Settings
from src.core.geo_utils import meters_to_km
from src.triage.models import Incident, IncidentType, utc_now
from src.triage.storage import StoreSession

logger = logging.getLogger(__name__)


class DuplicateDetector:
    """
    Finds recent same-type incidents near a location.

    A candidate has the same type, is not FALSE, was created within the
    trailing time window, and lies within the distance threshold
    (inclusive).
    """

    def __init__(
        self,
        distance_threshold_meters: float = 300.0,
        time_window_minutes: int = 10,
        clock=utc_now
    ):
        """
        Initialize detector.

        Args:
            distance_threshold_meters: Maximum great-circle distance
            time_window_minutes: How far back to look
            clock: Callable returning the current naive UTC datetime
        """
        self.distance_threshold_meters = distance_threshold_meters
        self.time_window_minutes = time_window_minutes
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, clock=utc_now) -> "DuplicateDetector":
        return cls(
            distance_threshold_meters=settings.duplicate_distance_threshold_meters,
            time_window_minutes=settings.duplicate_time_window_minutes,
            clock=clock,
        )

    @property
    def distance_threshold_km(self) -> float:
        return meters_to_km(self.distance_threshold_meters)

    def cutoff(self, now: Optional[datetime] = None) -> datetime:
        return (now or self.clock()) - timedelta(minutes=self.time_window_minutes)

    def find_duplicates(
        self,
        store: StoreSession,
        latitude: float,
        longitude: float,
        incident_type: IncidentType,
        now: Optional[datetime] = None
    ) -> List[Incident]:
        """
        Find potential duplicates of a report at a location.

        Args:
            store: Storage session to query
            latitude: Report latitude
            longitude: Report longitude
            incident_type: Report type
            now: Query instant, defaults to the clock

        Returns:
            Matching incidents, most recent first
        """
        duplicates = store.find_duplicate_candidates(
            latitude,
            longitude,
            incident_type,
            self.cutoff(now),
            self.distance_threshold_km,
        )
        if duplicates:
            logger.info(
                f"Found {len(duplicates)} potential duplicate(s) for {incident_type.value} "
                f"at ({latitude}, {longitude})"
            )
        return duplicates
