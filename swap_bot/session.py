"""Stateful distribution session for one guild.

The session owns the current roster, the last :class:`DistributionResult`, the
completion set and the ids of the posted Discord messages. All methods are
synchronous; the Discord layer runs them in a worker thread under a lock.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Literal

from .completion import CompletionTracker, ToggleResult
from .distribution import distribute, summarize
from .formatting import (
    DoneChoice,
    RemainingView,
    completion_choices,
    compute_remaining,
    format_distribution,
)
from .identity import PlayerIndex, completion_key, display_label
from .models import (
    DEFAULT_CAPACITY,
    DEFAULT_METRIC,
    HOLD_ACTION,
    DistributionResult,
    PlayerRecord,
    PostedMessages,
    ResetScope,
    SwapState,
    utc_now_ms,
)
from .sheets import RosterError
from .validation import (
    InvalidValueError,
    MissingColumnError,
    normalize_clan,
    normalize_season,
    parse_player_queries,
)

log = logging.getLogger(__name__)

SessionState = Literal["empty", "distributed"]
RESET_SCOPES: tuple[str, ...] = ("distribution-only", "all")


@dataclass(slots=True, frozen=True)
class PlayerOutcome:
    query: str
    ok: bool
    label: str = ""
    error: str | None = None
    now_complete: bool | None = None


@dataclass(slots=True)
class BatchOutcome:
    succeeded: list[PlayerOutcome] = field(default_factory=list)
    failed: list[PlayerOutcome] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.succeeded)


def _queries(raw: str | Iterable[str]) -> list[str]:
    if isinstance(raw, str):
        return parse_player_queries(raw)
    queries = [str(value).strip() for value in raw if str(value).strip()]
    if not queries:
        raise InvalidValueError("At least one player is required")
    return queries


class SwapSession:
    def __init__(
        self,
        guild_id: int,
        roster_store,
        state_storage=None,
        *,
        capacity: int = DEFAULT_CAPACITY,
        default_metric: str = DEFAULT_METRIC,
        default_season: str | None = None,
        sync_master: bool = False,
    ) -> None:
        self.guild_id = guild_id
        self.store = roster_store
        self.storage = state_storage
        self.capacity = capacity
        self.default_metric = default_metric
        self.default_season = default_season
        self.sync_master = sync_master

        self.roster: list[PlayerRecord] = []
        self.result: DistributionResult | None = None
        self.tracker = CompletionTracker()
        self.messages = PostedMessages()
        self.sort_metric: str | None = None
        self.season_label: str | None = None

    @property
    def state(self) -> SessionState:
        return "empty" if self.result is None else "distributed"

    # ----- Persistence -----
    def _storage_ready(self) -> bool:
        return self.storage is not None and self.storage.configured

    def snapshot(self) -> SwapState:
        return SwapState(
            guild_id=self.guild_id,
            sort_metric=self.sort_metric,
            season_label=self.season_label,
            completed_identifiers=self.tracker.snapshot(),
            timestamp=utc_now_ms(),
            messages=self.messages,
        )

    def restore(self, state: SwapState) -> None:
        self.sort_metric = state.sort_metric
        self.season_label = state.season_label
        self.tracker.restore(state.completed_identifiers)
        self.messages = state.messages

    def persist(self) -> None:
        if not self._storage_ready():
            return
        self.storage.save_state(self.snapshot())

    def load(self) -> bool:
        """Restore persisted state; returns ``True`` when something was found."""
        if not self._storage_ready():
            return False
        state = self.storage.load_state(self.guild_id)
        if state is None:
            return False
        self.restore(state)
        log.info(
            "Restored swap state for guild %s: metric=%s, %s completed",
            self.guild_id,
            state.sort_metric,
            len(state.completed_identifiers),
        )
        return True

    # ----- Distribution -----
    def distribute(
        self, metric: str | None = None, season: str | None = None
    ) -> DistributionResult:
        metric_name = (metric or self.sort_metric or self.default_metric).strip()
        season_label = (
            normalize_season(season) if season is not None else self.season_label
        )
        if self.sync_master:
            self.store.copy_source_range()
        roster = self.store.fetch_roster()
        if roster and not any(metric_name in record.fields for record in roster):
            columns = sorted({column for record in roster for column in record.fields})
            raise MissingColumnError(metric_name, columns)

        result = distribute(
            roster, metric_name, season_label, capacity=self.capacity
        )
        self.roster = roster
        self.result = result
        self.sort_metric = metric_name
        self.season_label = season_label
        self.persist()
        return result

    def refresh(self) -> DistributionResult | None:
        """Re-read the roster and recompute the last distribution, if any."""
        self.roster = self.store.fetch_roster()
        if self.sort_metric is None:
            return None
        self.result = distribute(
            self.roster,
            self.sort_metric,
            self.season_label,
            capacity=self.capacity,
        )
        return self.result

    # ----- Manual actions -----
    def manual_move(self, queries: str | Iterable[str], clan: str) -> BatchOutcome:
        return self._apply_action(_queries(queries), normalize_clan(clan))

    def hold(self, queries: str | Iterable[str]) -> BatchOutcome:
        return self._apply_action(_queries(queries), HOLD_ACTION)

    def include(self, queries: str | Iterable[str]) -> BatchOutcome:
        return self._apply_action(_queries(queries), "")

    def _apply_action(self, queries: list[str], action: str) -> BatchOutcome:
        if not self.roster:
            self.roster = self.store.fetch_roster()
        index = PlayerIndex(self.roster, self.result)
        outcome = BatchOutcome()
        for query in queries:
            record = index.find(query)
            if record is None:
                outcome.failed.append(
                    PlayerOutcome(query=query, ok=False, error="player not found")
                )
                continue
            try:
                self.store.write_manual_action(record, action)
            except RosterError as exc:
                log.warning("Could not update %s: %s", query, exc)
                outcome.failed.append(
                    PlayerOutcome(
                        query=query,
                        ok=False,
                        label=display_label(record),
                        error=str(exc),
                    )
                )
                continue
            outcome.succeeded.append(
                PlayerOutcome(query=query, ok=True, label=display_label(record))
            )

        if outcome.changed:
            self.refresh()
        return outcome

    # ----- Completion -----
    def _index(self) -> PlayerIndex:
        return PlayerIndex(self.roster, self.result)

    def toggle_complete(self, queries: str | Iterable[str]) -> BatchOutcome:
        index = self._index()
        outcome = BatchOutcome()
        for query in _queries(queries):
            record = index.find(query)
            if record is None:
                toggled = self.tracker.toggle(query)
                label = query
            else:
                toggled = self.tracker.toggle_record(record)
                label = display_label(record)
            outcome.succeeded.append(
                PlayerOutcome(
                    query=query, ok=True, label=label, now_complete=toggled.now_complete
                )
            )
        self.persist()
        return outcome

    def mark_complete(self, queries: str | Iterable[str]) -> BatchOutcome:
        return self._set_complete(_queries(queries), True)

    def unmark_complete(self, queries: str | Iterable[str]) -> BatchOutcome:
        return self._set_complete(_queries(queries), False)

    def _set_complete(self, queries: list[str], done: bool) -> BatchOutcome:
        index = self._index()
        outcome = BatchOutcome()
        for query in queries:
            record = index.find(query)
            if record is None:
                outcome.failed.append(
                    PlayerOutcome(query=query, ok=False, error="player not found")
                )
                continue
            if done:
                self.tracker.mark(completion_key(record))
            else:
                self.tracker.forget(record)
            outcome.succeeded.append(
                PlayerOutcome(
                    query=query,
                    ok=True,
                    label=display_label(record),
                    now_complete=done,
                )
            )
        if outcome.changed:
            self.persist()
        return outcome

    def toggle_keys(self, keys: Iterable[str]) -> list[ToggleResult]:
        """Toggle players by completion key, as produced by :meth:`choices`."""
        by_key: dict[str, PlayerRecord] = {}
        if self.result is not None:
            for record in self.result.all_records():
                by_key.setdefault(completion_key(record), record)
        results = []
        for key in keys:
            record = by_key.get(key)
            if record is None:
                results.append(self.tracker.toggle(key))
            else:
                results.append(self.tracker.toggle_record(record))
        self.persist()
        return results

    # ----- Reset -----
    def reset(self, scope: ResetScope = "distribution-only") -> int:
        """Return to the empty state; ``"all"`` also clears roster actions.

        Returns the number of manual actions cleared in the roster.
        """
        if scope not in RESET_SCOPES:
            raise InvalidValueError(f"Unknown reset scope: {scope}")
        cleared = 0
        if scope == "all":
            cleared = self.store.clear_all_manual_actions()

        self.roster = []
        self.result = None
        self.tracker.reset()
        self.messages = PostedMessages()
        self.sort_metric = None
        self.season_label = None
        if self._storage_ready():
            self.storage.delete_state(self.guild_id)
        log.info("Reset swap session for guild %s (scope=%s)", self.guild_id, scope)
        return cleared

    # ----- Views -----
    def require_result(self) -> DistributionResult:
        if self.result is None:
            raise InvalidValueError("No distribution yet. Use /swap first")
        return self.result

    def formatted(self) -> list[str]:
        return format_distribution(
            self.require_result(), self.tracker, default_season=self.default_season
        )

    def remaining(
        self, *, hide_completed: bool = False, use_pinned: bool = True
    ) -> RemainingView:
        pinned = self.messages.pinned_remaining if use_pinned else None
        return compute_remaining(
            self.result, self.tracker, pinned, hide_completed=hide_completed
        )

    def summary(self) -> dict[str, object]:
        return summarize(self.require_result())

    def choices(self) -> dict[str, list[DoneChoice]]:
        return completion_choices(self.require_result(), self.tracker)

    def find(self, query: str) -> PlayerRecord | None:
        return self._index().find(query)


__all__ = [
    "BatchOutcome",
    "PlayerOutcome",
    "RESET_SCOPES",
    "SessionState",
    "SwapSession",
]
