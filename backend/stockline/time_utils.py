# Overview: UTC timestamp helpers shared by models, services and movement filters.

"""
Every timestamp is stored as naive UTC. Values arriving with an offset are
converted on the way in; everything leaving through to_dict() ends in Z.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse the `since` bound of a movement listing.

    Accepts a bare date ("2026-10-01"), a naive datetime (read as UTC), or
    one with an offset or trailing Z. Blank means no bound.

    Raises:
        ValueError: not ISO-8601
    """
    if value is None or not value.strip():
        return None
    text = value.strip()
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"
    return as_naive_utc(datetime.fromisoformat(text))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Second precision, e.g. 2026-10-19T08:15:00Z."""
    if dt is None:
        return None
    return as_naive_utc(dt).replace(microsecond=0).isoformat() + "Z"
