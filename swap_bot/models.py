from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import ClassVar, Final, Literal

CLAN_NAMES: Final[tuple[str, ...]] = ("RGR", "OTL", "RND")
HOLD_ACTION: Final[str] = "Hold"
UNKNOWN_CLAN: Final[str] = "Unknown"
DEFAULT_CAPACITY: Final[int] = 50
DEFAULT_METRIC: Final[str] = "Trophies"
_METRIC_PREFIX: Final = re.compile(r"-?(?:\d+\.?\d*|\.\d+)")

OverrideKind = Literal["hold", "stay", "move", "other"]
ResetScope = Literal["distribution-only", "all"]


def utc_now_ms() -> int:
    """Return the current UTC time as epoch milliseconds."""
    return int(datetime.now(UTC).timestamp() * 1000)


@dataclass(frozen=True, slots=True)
class FieldAliases:
    """Column spellings accepted for each logical player field.

    Resolved once when rows are turned into :class:`PlayerRecord` objects.
    """

    name_fields: tuple[str, ...] = (
        "Name",
        "name",
        "Player",
        "player",
        "USERNAME",
        "username",
    )
    clan_fields: tuple[str, ...] = (
        "Clan",
        "clan",
        "Team",
        "team",
        "Guild",
        "guild",
        "CLAN",
        "TEAM",
    )
    external_id_fields: tuple[str, ...] = ("Discord-ID", "Discord_ID", "DiscordID")
    player_id_fields: tuple[str, ...] = ("Player_ID", "PlayerID", "ID", "player_id")
    metric_fallback_fields: tuple[str, ...] = (
        "Trophies",
        "trophies",
        "TROPHIES",
        "Trophy",
        "trophy",
        "Cups",
        "cups",
        "Score",
        "score",
    )
    action_field: str = "Action"
    # Column E always carries the current clan, whatever its header says.
    clan_column_index: int | None = 4

    @staticmethod
    def first_present(
        fields: dict[str, str], candidates: Iterable[str]
    ) -> tuple[str, str] | None:
        for column in candidates:
            value = fields.get(column)
            if value is not None and str(value).strip():
                return column, str(value).strip()
        return None


DEFAULT_ALIASES: Final = FieldAliases()


@dataclass(slots=True)
class PlayerRecord:
    fields: dict[str, str]
    name: str | None = None
    mention: str | None = None
    display_name: str | None = None
    external_id: str | None = None
    current_clan: str | None = None
    manual_action: str | None = None
    row_key_field: str | None = None
    row_key: str | None = None

    def raw_value(self, column: str | None) -> str:
        if not column:
            return ""
        value = self.fields.get(column)
        return str(value).strip() if value is not None else ""

    def metric(self, column: str) -> float:
        return parse_metric(self.fields.get(column))


def parse_metric(value: object) -> float:
    """Parse a ranking value permissively, returning ``0`` on failure."""
    if value is None:
        return 0.0
    cleaned = "".join(ch for ch in str(value) if ch.isdigit() or ch in ".-")
    # Read the longest numeric prefix, so "1-2" is 1 and "1.2.3" is 1.2.
    match = _METRIC_PREFIX.match(cleaned)
    if match is None:
        return 0.0
    return float(match.group(0))


@dataclass(slots=True)
class Override:
    record: PlayerRecord
    kind: OverrideKind
    target: str

    @property
    def counted_clan(self) -> str | None:
        """Clan whose capacity this override occupies, if any."""
        if self.kind == "other":
            return None
        if self.target in CLAN_NAMES:
            return self.target
        return None

    @property
    def requires_move(self) -> bool:
        return self.kind == "move"


@dataclass(slots=True)
class DistributionResult:
    groups: dict[str, list[PlayerRecord]]
    overrides: list[Override]
    sort_metric: str
    season_label: str | None = None
    capacity: int = DEFAULT_CAPACITY
    counts: dict[str, int] = field(default_factory=dict)
    unplaced: list[PlayerRecord] = field(default_factory=list)

    @classmethod
    def empty(
        cls, sort_metric: str = DEFAULT_METRIC, season_label: str | None = None
    ) -> DistributionResult:
        return cls(
            groups={clan: [] for clan in CLAN_NAMES},
            overrides=[],
            sort_metric=sort_metric,
            season_label=season_label,
            counts={clan: 0 for clan in CLAN_NAMES},
        )

    @property
    def visible_total(self) -> int:
        return sum(len(self.groups.get(clan, [])) for clan in CLAN_NAMES)

    @property
    def uncounted_overrides(self) -> list[Override]:
        return [entry for entry in self.overrides if entry.counted_clan is None]

    @property
    def capacity_exhausted(self) -> bool:
        return bool(self.unplaced)

    def group_members(self) -> Iterator[tuple[str, PlayerRecord]]:
        for clan in CLAN_NAMES:
            for record in self.groups.get(clan, []):
                yield clan, record

    def all_records(self) -> Iterator[PlayerRecord]:
        for _, record in self.group_members():
            yield record
        for entry in self.overrides:
            yield entry.record

    def override_for(self, record: PlayerRecord) -> Override | None:
        for entry in self.overrides:
            if entry.record is record:
                return entry
        return None


@dataclass(slots=True)
class RemainingEntry:
    identifier: str
    name: str
    target_clan: str
    completion_key: str
    mention: str | None = None
    external_id: str | None = None
    is_done: bool = False

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "identifier": self.identifier,
            "name": self.name,
            "target_clan": self.target_clan,
            "completion_key": self.completion_key,
            "is_done": self.is_done,
        }
        if self.mention is not None:
            data["mention"] = self.mention
        if self.external_id is not None:
            data["external_id"] = self.external_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> RemainingEntry:
        identifier = str(data.get("identifier", ""))
        return cls(
            identifier=identifier,
            name=str(data.get("name", "")) or "Unknown",
            target_clan=str(data.get("target_clan", UNKNOWN_CLAN)),
            completion_key=str(data.get("completion_key") or identifier),
            mention=(
                str(data.get("mention")) if data.get("mention") is not None else None
            ),
            external_id=(
                str(data.get("external_id"))
                if data.get("external_id") is not None
                else None
            ),
            is_done=bool(data.get("is_done", False)),
        )


@dataclass(slots=True)
class PostedMessages:
    """Discord messages the bot keeps editing across refreshes."""

    channel_id: int | None = None
    message_ids: list[int] = field(default_factory=list)
    remaining_channel_id: int | None = None
    remaining_message_ids: list[int] = field(default_factory=list)
    pinned_remaining: list[RemainingEntry] = field(default_factory=list)

    def clear_distribution(self) -> None:
        self.channel_id = None
        self.message_ids = []

    def clear_remaining(self) -> None:
        self.remaining_channel_id = None
        self.remaining_message_ids = []
        self.pinned_remaining = []


@dataclass(slots=True)
class SwapState:
    guild_id: int
    sort_metric: str | None
    season_label: str | None
    completed_identifiers: list[str]
    timestamp: int
    messages: PostedMessages = field(default_factory=PostedMessages)

    PK_TEMPLATE: ClassVar[str] = "GUILD#%s"
    SK_VALUE: ClassVar[str] = "SWAP_STATE"

    @classmethod
    def key(cls, guild_id: int) -> dict[str, str]:
        return {"pk": cls.PK_TEMPLATE % guild_id, "sk": cls.SK_VALUE}

    def to_item(self) -> dict[str, object]:
        item = self.key(self.guild_id)
        item.update(
            {
                "completed_identifiers": sorted(set(self.completed_identifiers)),
                "timestamp": self.timestamp,
                "message_ids": [str(msg_id) for msg_id in self.messages.message_ids],
                "remaining_message_ids": [
                    str(msg_id) for msg_id in self.messages.remaining_message_ids
                ],
                "pinned_remaining": [
                    entry.to_dict() for entry in self.messages.pinned_remaining
                ],
            }
        )
        if self.sort_metric is not None:
            item["sort_metric"] = self.sort_metric
        if self.season_label is not None:
            item["season_label"] = self.season_label
        if self.messages.channel_id is not None:
            item["channel_id"] = str(self.messages.channel_id)
        if self.messages.remaining_channel_id is not None:
            item["remaining_channel_id"] = str(self.messages.remaining_channel_id)
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> SwapState:
        guild_id = int(str(item["pk"]).split("#", 1)[1])
        completed: Iterable[object] = item.get("completed_identifiers", [])  # type: ignore[assignment]
        pinned_data: Iterable[dict[str, object]] = item.get("pinned_remaining", [])  # type: ignore[assignment]
        message_ids: Iterable[object] = item.get("message_ids", [])  # type: ignore[assignment]
        try:
            timestamp = int(item.get("timestamp", 0))  # type: ignore[arg-type]
        except (TypeError, ValueError):  # pragma: no cover - defensive
            timestamp = 0
        messages = PostedMessages(
            channel_id=_optional_int(item.get("channel_id")),
            message_ids=[int(str(value)) for value in message_ids],
            remaining_channel_id=_optional_int(item.get("remaining_channel_id")),
            remaining_message_ids=_remaining_ids(item),
            pinned_remaining=[RemainingEntry.from_dict(data) for data in pinned_data],
        )
        sort_metric = item.get("sort_metric")
        season_label = item.get("season_label")
        return cls(
            guild_id=guild_id,
            sort_metric=str(sort_metric) if sort_metric is not None else None,
            season_label=str(season_label) if season_label is not None else None,
            completed_identifiers=[str(value) for value in completed],
            timestamp=timestamp,
            messages=messages,
        )


def _remaining_ids(item: dict[str, object]) -> list[int]:
    values: Iterable[object] | None = item.get("remaining_message_ids")  # type: ignore[assignment]
    if values is None:
        # Items written before the view could span several messages.
        legacy = _optional_int(item.get("remaining_message_id"))
        return [legacy] if legacy is not None else []
    return [int(str(value)) for value in values]


def _optional_int(value: object) -> int | None:
    if value in (None, "", "None"):
        return None
    try:
        return int(str(value))
    except (TypeError, ValueError):
        return None


__all__ = [
    "CLAN_NAMES",
    "DEFAULT_ALIASES",
    "DEFAULT_CAPACITY",
    "DEFAULT_METRIC",
    "HOLD_ACTION",
    "UNKNOWN_CLAN",
    "DistributionResult",
    "FieldAliases",
    "Override",
    "OverrideKind",
    "PlayerRecord",
    "PostedMessages",
    "RemainingEntry",
    "ResetScope",
    "SwapState",
    "parse_metric",
    "utc_now_ms",
]
