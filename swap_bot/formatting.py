"""Chat-ready rendering of distributions and the swaps-left list."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import Final

from discord.utils import escape_markdown

from .completion import CompletionTracker
from .identity import completion_key, display_label, identify
from .models import (
    CLAN_NAMES,
    DEFAULT_ALIASES,
    UNKNOWN_CLAN,
    DistributionResult,
    Override,
    PlayerRecord,
    RemainingEntry,
)

MESSAGE_LIMIT: Final[int] = 2000
DONE_MARK: Final[str] = "✅"
DEFAULT_SEASON: Final[str] = "156"
TITLE_EMOJI: Final[str] = "<:RGR:1238937013940523008>"
MAX_OPTION_LABEL: Final[int] = 100

FOOTER_LINES: Final[tuple[str, ...]] = (
    "Stop: ❌  Hold: ✋  Done: ✅",
    "",
    "**IF SOMEONE IN __RGR OR OTL__ CAN'T PLAY AT RESET, PLEASE CONTACT LEADERSHIP!**",
    "",
    "AND DON'T FORGET TO HIT MANTICORE BEFORE YOU MOVE!",
    "",
    "❗**18-HOUR-RULE**❗",
    "__Anyone on the swap list who hasn't moved within 18 hours after reset will "
    "be automatically kicked from their current clan, replaced and must apply on "
    "their own to RND.__",
)


@dataclass(slots=True)
class RemainingView:
    text: str
    players: list[RemainingEntry]
    remaining_count: int
    total_count: int
    all_done: bool


@dataclass(slots=True, frozen=True)
class DoneChoice:
    clan: str
    key: str
    label: str
    is_done: bool


def metric_display(record: PlayerRecord, sort_metric: str | None) -> str:
    value = record.raw_value(sort_metric)
    if value:
        return value
    hit = DEFAULT_ALIASES.first_present(
        record.fields, DEFAULT_ALIASES.metric_fallback_fields
    )
    return hit[1] if hit else ""


def _player_prefix(record: PlayerRecord) -> str:
    name = escape_markdown(record.name or "")
    if record.mention:
        return f"{record.mention} {name}" if name else record.mention
    return name or escape_markdown(identify(record))


def player_line(
    record: PlayerRecord,
    result: DistributionResult,
    tracker: CompletionTracker,
) -> str:
    line = f"- {_player_prefix(record)}"
    value = metric_display(record, result.sort_metric)
    if value:
        line += f" {value}"
    if tracker.is_complete(record):
        line += f" {DONE_MARK}"
    return line


def override_line(entry: Override, tracker: CompletionTracker) -> str:
    line = f"- {_player_prefix(entry.record)}"
    if entry.kind in ("hold", "stay"):
        line += f" stays in {entry.target}"
    elif entry.kind == "move":
        line += f" moves to {entry.target}"
    else:
        line += f" keeps action {escape_markdown(entry.target)}"
    if tracker.is_complete(entry.record):
        line += f" {DONE_MARK}"
    return line


def _clan_section(
    clan: str, result: DistributionResult, tracker: CompletionTracker
) -> str:
    members = result.groups.get(clan, [])
    count_text = f" ({len(members)})" if members else ""
    lines = [f"**to {clan}{count_text}:**", ""]
    if not members:
        lines.append("_No players_")
    else:
        lines.extend(player_line(record, result, tracker) for record in members)
    return "\n".join(lines) + "\n"


def format_distribution(
    result: DistributionResult,
    tracker: CompletionTracker,
    *,
    default_season: str | None = None,
) -> list[str]:
    """Render ``result`` as message blocks split at clan boundaries.

    Block one carries the title and the first clan, block two the second
    clan, block three the last clan followed by the overrides and the footer.
    """
    season = result.season_label or default_season or DEFAULT_SEASON
    sections = {clan: _clan_section(clan, result, tracker) for clan in CLAN_NAMES}
    first, second, last = CLAN_NAMES

    title = f"{TITLE_EMOJI} **SWAP LIST SEASON {season}** {TITLE_EMOJI}\n\n"
    blocks = [title + sections[first], sections[second]]

    final = sections[last]
    if result.overrides:
        final += f"\n**WILDCARDS ({len(result.overrides)}):**\n"
        final += "\n".join(override_line(entry, tracker) for entry in result.overrides)
        final += "\n"
    final += "\n" + "\n".join(FOOTER_LINES)
    blocks.append(final)
    return blocks


def _entry_for(record: PlayerRecord, target: str, done: bool) -> RemainingEntry:
    return RemainingEntry(
        identifier=identify(record),
        name=display_label(record),
        target_clan=target,
        completion_key=completion_key(record),
        mention=record.mention,
        external_id=record.external_id,
        is_done=done,
    )


def _render_remaining(
    players: Sequence[RemainingEntry], remaining: int, total: int
) -> str:
    lines = ["**SWAPS LEFT**", ""]
    lines.append(f"Total players remaining: **{remaining}** / {total}")
    lines.append("")
    for entry in players:
        label = f"{entry.mention} {entry.name}" if entry.mention else entry.name
        mark = f" {DONE_MARK}" if entry.is_done else ""
        lines.append(f"• {label} - Please move to **{entry.target_clan}**{mark}")
    if total > 0 and remaining == 0:
        lines.append("")
        lines.append("🎉 All swaps are complete!")
    return "\n".join(lines) + "\n"


def compute_remaining(
    result: DistributionResult | None,
    tracker: CompletionTracker,
    pinned: Sequence[RemainingEntry] | None = None,
    *,
    hide_completed: bool = False,
) -> RemainingView:
    """Build the list of players that still have to move.

    With ``pinned`` the membership is fixed and only the done flags are
    re-evaluated, so an already posted list never grows or shrinks.
    """
    if pinned:
        players = [
            replace(entry, is_done=tracker.is_entry_complete(entry)) for entry in pinned
        ]
        total = len(players)
        remaining = sum(1 for entry in players if not entry.is_done)
        return RemainingView(
            text=_render_remaining(players, remaining, total),
            players=players,
            remaining_count=remaining,
            total_count=total,
            all_done=total > 0 and remaining == 0,
        )

    candidates: list[RemainingEntry] = []
    if result is not None:
        for clan, record in result.group_members():
            candidates.append(_entry_for(record, clan, tracker.is_complete(record)))
        for entry in result.overrides:
            if entry.requires_move:
                candidates.append(
                    _entry_for(
                        entry.record,
                        entry.target or UNKNOWN_CLAN,
                        tracker.is_complete(entry.record),
                    )
                )

    total = len(candidates)
    remaining = sum(1 for entry in candidates if not entry.is_done)
    shown = (
        [entry for entry in candidates if not entry.is_done]
        if hide_completed
        else candidates
    )
    return RemainingView(
        text=_render_remaining(shown, remaining, total),
        players=shown,
        remaining_count=remaining,
        total_count=total,
        all_done=total > 0 and remaining == 0,
    )


def completion_choices(
    result: DistributionResult, tracker: CompletionTracker
) -> dict[str, list[DoneChoice]]:
    """Players per clan (plus wildcards) for the done-marking menus."""
    choices: dict[str, list[DoneChoice]] = {clan: [] for clan in CLAN_NAMES}
    choices["WILDCARDS"] = []
    for clan, record in result.group_members():
        choices[clan].append(_choice(clan, record, tracker))
    for entry in result.overrides:
        choices["WILDCARDS"].append(_choice("WILDCARDS", entry.record, tracker))
    return choices


def _choice(clan: str, record: PlayerRecord, tracker: CompletionTracker) -> DoneChoice:
    done = tracker.is_complete(record)
    label = display_label(record)
    if done:
        label = f"{DONE_MARK} {label}"
    if len(label) > MAX_OPTION_LABEL:
        label = label[: MAX_OPTION_LABEL - 3] + "..."
    return DoneChoice(clan=clan, key=completion_key(record), label=label, is_done=done)


def split_message(text: str, limit: int = MESSAGE_LIMIT) -> list[str]:
    """Split ``text`` on line boundaries into chunks of at most ``limit``."""
    if not text:
        return []
    chunks: list[str] = []
    current = ""
    for line in text.split("\n"):
        while len(line) + 1 > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[: limit - 1] + "\n")
            line = line[limit - 1 :]
        if len(current) + len(line) + 1 > limit:
            chunks.append(current)
            current = line + "\n"
        else:
            current += line + "\n"
    if current.strip():
        chunks.append(current)
    return chunks


__all__ = [
    "DEFAULT_SEASON",
    "DONE_MARK",
    "DoneChoice",
    "MESSAGE_LIMIT",
    "RemainingView",
    "completion_choices",
    "compute_remaining",
    "format_distribution",
    "metric_display",
    "override_line",
    "player_line",
    "split_message",
]
