"""
Incident Triage - Constants and Reference Data
Static values used throughout the application.
"""

from typing import Dict, List, Tuple

# =============================================================================
# CONFIDENCE SCORING
# =============================================================================

MIN_CONFIDENCE_SCORE: int = 0
MAX_CONFIDENCE_SCORE: int = 100

# GPS accuracy bands (upper bound in meters) -> divisor of the maximum bonus.
# Anything worse than the last band earns max // 4.
GPS_ACCURACY_BANDS: List[Tuple[float, int]] = [
    (10.0, 1),   # full bonus
    (50.0, 2),   # half bonus
]
GPS_ACCURACY_FALLBACK_DIVISOR: int = 4

# Report age (upper bound in hours) -> freshness bonus
FRESHNESS_BONUSES: List[Tuple[float, int]] = [
    (1.0, 5),
    (6.0, 2),
]

# Confidence level labels (lower bound of score)
CONFIDENCE_LEVELS: Dict[str, int] = {
    "HIGH": 70,
    "MEDIUM": 40,
    "LOW": 0,
}

# =============================================================================
# REPUTATION LADDER
# =============================================================================

RELIABLE_VERIFIED_THRESHOLD: int = 3
TRUSTED_VERIFIED_THRESHOLD: int = 10
DEMOTION_FALSE_THRESHOLD: int = 3

# =============================================================================
# REPORTING
# =============================================================================

ANONYMOUS_USERNAME: str = "anonymous"
ANONYMOUS_EMAIL_DOMAIN: str = "anonymous.local"

INCIDENT_CODE_PREFIX: str = "INC"
INCIDENT_CODE_TIMESTAMP_FORMAT: str = "%Y%m%d%H%M%S"

INITIAL_TIMELINE_NOTE: str = "Incident reported"

DASHBOARD_RECENT_LIMIT: int = 10

DEFAULT_QUERY_LIMIT: int = 50
MAX_QUERY_LIMIT: int = 200

# Default staff accounts created by the seeding step: (username, role)
DEFAULT_STAFF_ACCOUNTS: List[Tuple[str, str]] = [
    ("admin", "ADMIN"),
    ("responder", "RESPONDER"),
]
