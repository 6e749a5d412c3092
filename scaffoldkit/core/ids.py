"""
ID generation: run_id

Format: RUN-{timestamp}-{uuid[:8]}
"""

import uuid
from datetime import UTC, datetime

from scaffoldkit.domain.constants import RUN_ID_PREFIX


def generate_run_id() -> str:
    """
    Generate a unique run ID.

    Uniqueness: UUID v4 suffix; the UTC timestamp keeps IDs sortable.

    Returns:
        e.g. "RUN-20250101120000-1a2b3c4d"
    """
    now = datetime.now(UTC)
    timestamp = now.strftime("%Y%m%d%H%M%S")
    unique = uuid.uuid4().hex[:8]

    return f"{RUN_ID_PREFIX}{timestamp}-{unique}"
