"""
Public incident code generation.
"""

import random
import re
from datetime import datetime
from typing import Optional

from src.core.constants import INCIDENT_CODE_PREFIX, INCIDENT_CODE_TIMESTAMP_FORMAT
from src.triage.models import utc_now

INCIDENT_CODE_PATTERN = re.compile(rf"^{INCIDENT_CODE_PREFIX}-\d{{14}}-\d{{4}}$")

_random = random.SystemRandom()


def generate_incident_code(now: Optional[datetime] = None) -> str:
    """
    Generate a human-shareable incident code.

    Format is ``INC-<yyyyMMddHHmmss>-<4 random digits>``. Codes are not
    guaranteed unique; callers regenerate on a uniqueness violation.

    Args:
        now: Timestamp to embed, defaults to current UTC time

    Returns:
        Incident code string
    """
    timestamp = (now or utc_now()).strftime(INCIDENT_CODE_TIMESTAMP_FORMAT)
    suffix = f"{_random.randrange(10000):04d}"
    return f"{INCIDENT_CODE_PREFIX}-{timestamp}-{suffix}"


def is_incident_code(value: str) -> bool:
    """Check whether a string looks like a public incident code."""
    return bool(INCIDENT_CODE_PATTERN.match(value or ""))
