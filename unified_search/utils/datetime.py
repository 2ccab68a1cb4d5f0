"""Datetime parsing helpers for backend release dates and history timestamps."""

from __future__ import annotations

from datetime import date, datetime, timezone


def parse_timestamp(value: str | None) -> float | None:
    """Parse YYYY, YYYY-MM, YYYY-MM-DD or full ISO-8601 strings into a UTC epoch.

    Naive values are read as UTC. Anything unparseable returns None.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    try:
        if len(text) == 4:
            parsed = datetime.combine(date.fromisoformat(f"{text}-01-01"), datetime.min.time())
        elif len(text) == 7:
            parsed = datetime.combine(date.fromisoformat(f"{text}-01"), datetime.min.time())
        elif len(text) == 10:
            parsed = datetime.combine(date.fromisoformat(text), datetime.min.time())
        else:
            if text.endswith(("Z", "z")):
                text = f"{text[:-1]}+00:00"
            parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
