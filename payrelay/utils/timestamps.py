"""
UTC timestamp helpers shared by the event buffer, log entries and archive names.
"""
from datetime import datetime, timezone
from typing import Optional


def utc_iso(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC with millisecond precision and a Z suffix (2026-01-31T12:00:00.000Z)."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def filesystem_safe_label(now: Optional[datetime] = None) -> str:
    """utc_iso() with ':' and '.' replaced by '-' so it can go in a filename."""
    return utc_iso(now).replace(":", "-").replace(".", "-")
