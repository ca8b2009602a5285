from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from .identity import completion_key, extract_discord_id, identify
from .models import PlayerRecord, RemainingEntry

log = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ToggleResult:
    key: str
    now_complete: bool


class CompletionTracker:
    """Set of players that finished their move.

    Keys are Discord ids when known and resolved identifiers otherwise. Older
    state may still hold raw mentions, display names or in-game names marked
    before the player was mapped to Discord. Lookups accept any of those and
    finally any stored entry that contains the player's Discord id.
    """

    def __init__(self, completed: Iterable[str] | None = None) -> None:
        self._completed: set[str] = set(completed or ())

    def __len__(self) -> int:
        return len(self._completed)

    def __contains__(self, key: object) -> bool:
        return key in self._completed

    def toggle(self, key: str) -> ToggleResult:
        if key in self._completed:
            self._completed.discard(key)
            log.info("Unmarked %s as done", key)
            return ToggleResult(key=key, now_complete=False)
        self._completed.add(key)
        log.info("Marked %s as done", key)
        return ToggleResult(key=key, now_complete=True)

    def toggle_record(self, record: PlayerRecord) -> ToggleResult:
        key = completion_key(record)
        if self.is_complete(record):
            self.forget(record)
            log.info("Unmarked %s as done", key)
            return ToggleResult(key=key, now_complete=False)
        self._completed.add(key)
        log.info("Marked %s as done", key)
        return ToggleResult(key=key, now_complete=True)

    def mark(self, key: str) -> None:
        self._completed.add(key)

    def unmark(self, key: str) -> None:
        self._completed.discard(key)

    def forget(self, record: PlayerRecord) -> None:
        """Drop every stored entry that marks ``record`` as done."""
        for value in (
            completion_key(record),
            identify(record),
            record.mention,
            record.name,
        ):
            if value:
                self._completed.discard(value)
        if record.external_id:
            self._completed = {
                entry for entry in self._completed if record.external_id not in entry
            }

    def is_complete(self, record: PlayerRecord) -> bool:
        return self._matches(
            completion_key(record),
            identify(record),
            record.mention,
            record.name,
            record.external_id,
        )

    def is_entry_complete(self, entry: RemainingEntry) -> bool:
        return self._matches(
            entry.completion_key,
            entry.identifier,
            entry.mention,
            entry.name,
            entry.external_id or extract_discord_id(entry.mention),
        )

    def reset(self) -> None:
        self._completed.clear()

    def snapshot(self) -> list[str]:
        return sorted(self._completed)

    def restore(self, completed: Iterable[str]) -> None:
        self._completed = set(completed)

    def _matches(
        self,
        key: str,
        identifier: str | None,
        mention: str | None,
        name: str | None,
        external_id: str | None,
    ) -> bool:
        if key in self._completed:
            return True
        if identifier and identifier in self._completed:
            return True
        if mention and mention in self._completed:
            return True
        if name and name in self._completed:
            return True
        if external_id:
            return any(external_id in entry for entry in self._completed)
        return False


__all__ = ["CompletionTracker", "ToggleResult"]
