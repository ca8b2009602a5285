from __future__ import annotations

import logging
from collections.abc import Sequence

from .identity import identify
from .models import (
    CLAN_NAMES,
    DEFAULT_CAPACITY,
    HOLD_ACTION,
    UNKNOWN_CLAN,
    DistributionResult,
    Override,
    PlayerRecord,
)

log = logging.getLogger(__name__)


def canonical_clan(value: str | None) -> str | None:
    """Return the fixed clan name matching ``value`` case-insensitively."""
    if not value:
        return None
    lowered = value.strip().lower()
    for clan in CLAN_NAMES:
        if clan.lower() == lowered:
            return clan
    return None


def classify_override(record: PlayerRecord) -> Override:
    action = (record.manual_action or "").strip()
    current = canonical_clan(record.current_clan)
    if action == HOLD_ACTION:
        target = current or (record.current_clan or "").strip() or UNKNOWN_CLAN
        return Override(record=record, kind="hold", target=target)
    if action in CLAN_NAMES:
        if current == action:
            return Override(record=record, kind="stay", target=action)
        return Override(record=record, kind="move", target=action)
    return Override(record=record, kind="other", target=action)


def distribute(
    records: Sequence[PlayerRecord],
    metric_name: str,
    season_label: str | None = None,
    *,
    capacity: int = DEFAULT_CAPACITY,
) -> DistributionResult:
    """Partition ``records`` into the capacity-bounded clan groups.

    Players with a manual action become overrides and keep their roster
    order. Hold, stay and move overrides occupy a slot in the clan they end up
    in. Everyone else is ranked by ``metric_name`` (descending, stable) and
    poured into the clans in order; players already in their assigned clan
    count toward capacity but are not listed.
    """
    counts = {clan: 0 for clan in CLAN_NAMES}
    groups: dict[str, list[PlayerRecord]] = {clan: [] for clan in CLAN_NAMES}
    overrides: list[Override] = []
    available: list[PlayerRecord] = []

    for record in records:
        if record.manual_action and record.manual_action.strip():
            entry = classify_override(record)
            overrides.append(entry)
            if entry.counted_clan is not None:
                counts[entry.counted_clan] += 1
        else:
            available.append(record)

    for clan, count in counts.items():
        if count > capacity:
            log.warning(
                "Manual overrides already place %s players in %s (capacity %s)",
                count,
                clan,
                capacity,
            )
    uncounted = [entry for entry in overrides if entry.counted_clan is None]
    if uncounted:
        log.warning(
            "%s override(s) do not count against any clan: %s",
            len(uncounted),
            ", ".join(identify(entry.record) for entry in uncounted),
        )

    ranked = sorted(available, key=lambda record: -record.metric(metric_name))

    unplaced: list[PlayerRecord] = []
    cursor = 0
    for position, record in enumerate(ranked):
        while cursor < len(CLAN_NAMES) and counts[CLAN_NAMES[cursor]] >= capacity:
            cursor += 1
        if cursor >= len(CLAN_NAMES):
            unplaced = ranked[position:]
            log.warning(
                "All clans are full; %s player(s) left unplaced", len(unplaced)
            )
            break
        clan = CLAN_NAMES[cursor]
        counts[clan] += 1
        if canonical_clan(record.current_clan) != clan:
            groups[clan].append(record)

    log.info(
        "Distribution by %s: %s | overrides=%s",
        metric_name,
        ", ".join(
            f"{clan} {len(groups[clan])} moving ({counts[clan]} total)"
            for clan in CLAN_NAMES
        ),
        len(overrides),
    )
    return DistributionResult(
        groups=groups,
        overrides=overrides,
        sort_metric=metric_name,
        season_label=season_label,
        capacity=capacity,
        counts=counts,
        unplaced=unplaced,
    )


def summarize(result: DistributionResult) -> dict[str, object]:
    return {
        "groups": {clan: len(result.groups.get(clan, [])) for clan in CLAN_NAMES},
        "total": result.visible_total,
        "excluded": len(result.overrides),
        "unplaced": len(result.unplaced),
        "sort_metric": result.sort_metric,
    }


__all__ = [
    "canonical_clan",
    "classify_override",
    "distribute",
    "summarize",
]
