"""Run and session identifiers."""

import re
import secrets
from datetime import datetime


def sanitize_slug(name: str) -> str:
    """Convert name to safe slug.

    Args:
        name: Name to sanitize

    Returns:
        Lowercase slug with only alphanumeric and hyphens
    """
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower())
    slug = slug.strip("-")
    return slug[:50] if slug else "unnamed"


def generate_batch_id(slug: str | None = None) -> str:
    """Generate batch ID in format YYYYMMDD-HHMMSS[-<slug>]."""
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    if slug:
        return f"{timestamp}-{sanitize_slug(slug)}"
    return timestamp


def generate_run_id(batch_id: str | None = None, index: int | None = None) -> str:
    """Generate run ID.

    Runs inside a batch get ``<batch_id>-r<NNN>`` (1-indexed); standalone
    runs get a timestamp plus a short random suffix.
    """
    if batch_id is not None and index is not None:
        return f"{batch_id}-r{index + 1:03d}"
    return f"{generate_batch_id()}-{secrets.token_hex(2)}"


def generate_session_id() -> str:
    """Generate session ID in format gen_YYYYMMDD_HHMMSS_<4 hex chars>."""
    now = datetime.now()
    return f"gen_{now.strftime('%Y%m%d')}_{now.strftime('%H%M%S')}_{secrets.token_hex(2)}"
