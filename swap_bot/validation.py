from __future__ import annotations

import re
from datetime import UTC, datetime

from .models import CLAN_NAMES


class InvalidValueError(ValueError):
    """Base exception for validation failures."""


class InvalidClanError(InvalidValueError):
    """Raised when a clan outside the fixed clan list is requested."""


class InvalidScheduleError(InvalidValueError):
    """Raised when a scheduled post time cannot be used."""


class MissingColumnError(InvalidValueError):
    """Raised when the roster has no column for the requested sort metric."""

    def __init__(self, column: str, available: list[str]) -> None:
        self.column = column
        self.available = available
        super().__init__(f'Column "{column}" not found')


_SPLIT_PATTERN = re.compile(r",")


def normalize_clan(raw: str) -> str:
    value = raw.strip()
    for clan in CLAN_NAMES:
        if value.upper() == clan:
            return clan
    raise InvalidClanError(
        f"Invalid clan: {raw}. Must be one of: {', '.join(CLAN_NAMES)}"
    )


def parse_player_queries(raw: str) -> list[str]:
    """Split a comma separated list of player names or mentions."""
    raw = raw.strip()
    if not raw:
        raise InvalidValueError("At least one player is required")
    queries: list[str] = []
    seen: set[str] = set()
    for part in _SPLIT_PATTERN.split(raw):
        query = part.strip()
        if not query or query in seen:
            continue
        seen.add(query)
        queries.append(query)
    if not queries:
        raise InvalidValueError("At least one player is required")
    return queries


def parse_schedule_datetime(raw: str, *, now: datetime | None = None) -> datetime:
    value = raw.strip()
    if not value:
        raise InvalidScheduleError("A date/time value is required")

    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise InvalidScheduleError(
            "Invalid datetime format! Use: YYYY-MM-DD HH:MM (e.g., 2024-12-25 14:30)"
        ) from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    else:
        parsed = parsed.astimezone(UTC)

    current = now or datetime.now(UTC)
    if parsed <= current:
        raise InvalidScheduleError("The scheduled time must be in the future!")
    return parsed


def normalize_season(raw: str | None) -> str | None:
    if raw is None:
        return None
    value = raw.strip()
    if not value:
        return None
    if len(value) > 32:
        raise InvalidValueError("Season label must be 32 characters or fewer")
    return value


__all__ = [
    "InvalidValueError",
    "InvalidClanError",
    "InvalidScheduleError",
    "MissingColumnError",
    "normalize_clan",
    "normalize_season",
    "parse_player_queries",
    "parse_schedule_datetime",
]
