"""Shared helpers for all models."""

from datetime import datetime, timezone
from enum import StrEnum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to a timestamp read back from SQLite, which drops the offset."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DocumentSource(StrEnum):
    LOCAL = "local"
    FEISHU = "feishu"
    WECOM = "wecom"
