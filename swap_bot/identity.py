"""Player identity resolution.

Every part of the bot that needs to decide whether two rows describe the same
player goes through :func:`identify` (display handle) or
:func:`completion_key` (stable key for the done markers). Free-text lookups
for admin commands use :class:`PlayerIndex`.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Final

from .models import (
    DEFAULT_ALIASES,
    DistributionResult,
    FieldAliases,
    PlayerRecord,
)

MENTION_PATTERN: Final = re.compile(r"<@!?(\d+)>")
_DIGITS_PATTERN: Final = re.compile(r"^\d+$")

UNKNOWN_PLAYER: Final[str] = "Unknown"


def extract_discord_id(text: str | None) -> str | None:
    if not text:
        return None
    match = MENTION_PATTERN.search(text)
    return match.group(1) if match else None


def format_mention(value: str) -> str:
    """Normalize a Discord map entry into something that renders as a mention.

    Numeric ids become ``<@id>``, existing mentions are kept as-is and plain
    usernames get an ``@`` prefix.
    """
    value = value.strip()
    if _DIGITS_PATTERN.match(value):
        return f"<@{value}>"
    if value.startswith("<@") and value.endswith(">"):
        return value
    if not value.startswith("@"):
        return "@" + value
    return value


def build_record(
    fields: Mapping[str, str],
    aliases: FieldAliases = DEFAULT_ALIASES,
    discord_mapping: Mapping[str, str] | None = None,
) -> PlayerRecord:
    """Resolve the aliased columns of a roster row into a :class:`PlayerRecord`."""
    row = {str(key): str(value) for key, value in fields.items()}
    name_hit = aliases.first_present(row, aliases.name_fields)
    clan_hit = aliases.first_present(row, aliases.clan_fields)
    player_id_hit = aliases.first_present(row, aliases.player_id_fields)
    external_hit = aliases.first_present(row, aliases.external_id_fields)
    action = row.get(aliases.action_field, "").strip()

    name = name_hit[1] if name_hit else None
    mention: str | None = None
    if player_id_hit and discord_mapping:
        mapped = discord_mapping.get(player_id_hit[1])
        if mapped:
            mention = format_mention(mapped)

    external_id = external_hit[1] if external_hit else extract_discord_id(mention)
    display_name = mention or name

    key_hit = player_id_hit or name_hit
    return PlayerRecord(
        fields=row,
        name=name,
        mention=mention,
        display_name=display_name,
        external_id=external_id,
        current_clan=clan_hit[1] if clan_hit else None,
        manual_action=action or None,
        row_key_field=key_hit[0] if key_hit else None,
        row_key=key_hit[1] if key_hit else None,
    )


def identify(record: PlayerRecord, aliases: FieldAliases = DEFAULT_ALIASES) -> str:
    if record.display_name and record.display_name.strip():
        return record.display_name.strip()
    if record.mention and record.mention.strip():
        return record.mention.strip()
    hit = aliases.first_present(record.fields, aliases.name_fields)
    if hit:
        return hit[1]
    for value in record.fields.values():
        if value is not None and str(value).strip():
            return str(value).strip()
    return UNKNOWN_PLAYER


def completion_key(record: PlayerRecord) -> str:
    """Key stored in the completion set: the Discord id when known."""
    if record.external_id:
        return record.external_id
    return identify(record)


def display_label(record: PlayerRecord) -> str:
    """In-game name first, used where the mention is printed separately."""
    if record.name:
        return record.name
    if record.display_name and record.display_name.strip():
        return record.display_name.strip()
    if record.mention:
        return record.mention
    return identify(record)


class PlayerIndex:
    """Lookup table used to resolve free-text admin queries to roster rows.

    The raw roster is searched first, then every distribution group and the
    overrides, because a stale roster may not contain players that were
    already partitioned.
    """

    def __init__(
        self,
        roster: Iterable[PlayerRecord],
        result: DistributionResult | None = None,
    ) -> None:
        collections: list[list[PlayerRecord]] = [list(roster)]
        if result is not None:
            for members in result.groups.values():
                collections.append(list(members))
            collections.append([entry.record for entry in result.overrides])
        self._tiers = [_IndexTier(records) for records in collections if records]

    def find(self, query: str) -> PlayerRecord | None:
        term = str(query).strip()
        if not term:
            return None
        discord_id = extract_discord_id(term)
        for tier in self._tiers:
            record = tier.find(term, discord_id)
            if record is not None:
                return record
        return None


class _IndexTier:
    def __init__(self, records: list[PlayerRecord]) -> None:
        self.records = records
        self.by_mention: dict[str, PlayerRecord] = {}
        self.by_name: dict[str, PlayerRecord] = {}
        self.by_external_id: dict[str, PlayerRecord] = {}
        self.names: list[tuple[str, PlayerRecord]] = []
        for record in records:
            if record.mention:
                self.by_mention.setdefault(record.mention.strip(), record)
            if record.external_id:
                self.by_external_id.setdefault(record.external_id, record)
            for candidate in _name_candidates(record):
                self.by_name.setdefault(candidate, record)
                self.names.append((candidate, record))

    def find(self, term: str, discord_id: str | None) -> PlayerRecord | None:
        record = self.by_mention.get(term)
        if record is not None:
            return record
        lowered = term.lower()
        record = self.by_name.get(lowered)
        if record is not None:
            return record
        if discord_id is not None:
            record = self.by_external_id.get(discord_id)
            if record is not None:
                return record
        # Exact names win over a substring hit earlier in the same tier.
        for candidate, record in self.names:
            if lowered in candidate:
                return record
        return None


def find_player(
    query: str,
    roster: Iterable[PlayerRecord],
    result: DistributionResult | None = None,
) -> PlayerRecord | None:
    """One-off lookup; build a :class:`PlayerIndex` when resolving many queries."""
    return PlayerIndex(roster, result).find(query)


def _name_candidates(record: PlayerRecord) -> list[str]:
    names: list[str] = []
    for value in (identify(record), record.name):
        if value:
            lowered = value.strip().lower()
            if lowered and lowered not in names:
                names.append(lowered)
    return names


__all__ = [
    "MENTION_PATTERN",
    "PlayerIndex",
    "build_record",
    "completion_key",
    "find_player",
    "display_label",
    "extract_discord_id",
    "format_mention",
    "identify",
]
