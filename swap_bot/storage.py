from __future__ import annotations

import logging

from botocore.exceptions import ClientError

from .models import SwapState

log = logging.getLogger(__name__)


class StateStorageError(RuntimeError):
    """Raised when the swap state table cannot be used."""


class SwapStateStorage:
    def __init__(self, table) -> None:
        self._table = table

    @property
    def configured(self) -> bool:
        return self._table is not None

    def ensure_table(self) -> None:
        if self._table is None:
            raise StateStorageError("Swap state table is not configured")

    def load_state(self, guild_id: int) -> SwapState | None:
        self.ensure_table()
        resp = self._table.get_item(Key=SwapState.key(guild_id))
        item = resp.get("Item")
        if not item:
            return None
        return SwapState.from_item(item)

    def save_state(self, state: SwapState) -> None:
        self.ensure_table()
        self._table.put_item(Item=state.to_item())
        log.debug(
            "Saved swap state for guild %s (%s completed)",
            state.guild_id,
            len(state.completed_identifiers),
        )

    def delete_state(self, guild_id: int) -> bool:
        self.ensure_table()
        try:
            self._table.delete_item(
                Key=SwapState.key(guild_id),
                ConditionExpression="attribute_exists(pk)",
            )
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code == "ConditionalCheckFailedException":
                return False
            raise
        return True


__all__ = ["StateStorageError", "SwapStateStorage"]
