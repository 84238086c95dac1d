"""
Configuration module for the Binary Audit service.

Centralizes all configuration with environment variable support.
Values are read once at import.
"""

import os
from typing import List, Optional

from binaudit import HttpNarrativeBackend, NarrativeBackend
from binaudit.analyzers import DEFAULT_ANALYZER_ORDER

# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("BINAUDIT_ENV", "dev")  # dev|stage|prod

# Logging
LOG_LEVEL = os.getenv("BINAUDIT_LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("BINAUDIT_LOG_JSON", "true").lower() in ("1", "true", "yes")
LOG_FILE = os.getenv("BINAUDIT_LOG_FILE") or None

# Analyzers, in registration order
ANALYZERS: List[str] = [
    name.strip()
    for name in os.getenv("BINAUDIT_ANALYZERS", ",".join(DEFAULT_ANALYZER_ORDER)).split(",")
    if name.strip()
]

# Narrative backend
NARRATIVE_BACKEND = os.getenv("NARRATIVE_BACKEND", "none")  # none|http
NARRATIVE_URL = os.getenv("NARRATIVE_URL", "")
NARRATIVE_MODEL = os.getenv("NARRATIVE_MODEL") or None
NARRATIVE_TIMEOUT_SECONDS = float(os.getenv("NARRATIVE_TIMEOUT_SECONDS", "30"))

# Submissions
MAX_PAYLOAD_BYTES = int(os.getenv("MAX_PAYLOAD_BYTES", str(10 * 1024 * 1024)))
COLLISION_POLICY = os.getenv("BINAUDIT_COLLISION_POLICY", "overwrite")  # overwrite|reject


# ============================================================
# Collaborators
# ============================================================

def get_narrative_backend() -> Optional[NarrativeBackend]:
    """
    Build the configured narrative backend.

    Returns None when no backend is configured; the service then uses the
    rule-based narrative only.
    """
    if NARRATIVE_BACKEND != "http":
        return None
    if not NARRATIVE_URL:
        return None
    return HttpNarrativeBackend(
        NARRATIVE_URL,
        model=NARRATIVE_MODEL,
        timeout_seconds=NARRATIVE_TIMEOUT_SECONDS,
    )


# ============================================================
# Feature Flags
# ============================================================

def is_production() -> bool:
    """Check if running in production mode."""
    return ENV == "prod"


def is_debug() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("BINAUDIT_DEBUG", "").lower() in ("1", "true", "yes")
