"""Human-friendly relative timestamps."""

from __future__ import annotations

from datetime import datetime, timezone


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def format_time_since(moment: datetime, now: datetime | None = None) -> str:
    """Describe how long ago ``moment`` was, e.g. ``"5 minutes ago"``.

    Naive datetimes are treated as UTC. Moments in the future read as
    "just now"; anything older than 30 days falls back to the ISO date.
    """

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)

    seconds = int((current - moment).total_seconds())
    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return _plural(minutes, "minute")
    hours = minutes // 60
    if hours < 24:
        return _plural(hours, "hour")
    days = hours // 24
    if days == 1:
        return "yesterday"
    if days <= 30:
        return _plural(days, "day")
    return moment.date().isoformat()
