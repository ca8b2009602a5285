"""Builders and in-memory fakes shared by the test modules."""

from __future__ import annotations

from botocore.exceptions import ClientError

from swap_bot.identity import build_record
from swap_bot.models import PlayerRecord
from swap_bot.sheets import RosterError, RosterRowNotFoundError


def make_record(
    name: str,
    trophies: int | str = 0,
    clan: str = "",
    action: str = "",
    *,
    player_id: str | None = None,
    discord_id: str | None = None,
    mapping: dict[str, str] | None = None,
) -> PlayerRecord:
    row = {"Name": name, "Trophies": str(trophies), "Clan": clan, "Action": action}
    if player_id is not None:
        row["Player_ID"] = player_id
    if discord_id is not None:
        row["Discord-ID"] = discord_id
    return build_record(row, discord_mapping=mapping)


class FakeTable:
    def __init__(self) -> None:
        self.items: dict[tuple[str, str], dict[str, object]] = {}

    def get_item(self, *, Key):
        return {"Item": self.items.get((Key["pk"], Key["sk"]))}

    def put_item(self, *, Item):
        self.items[(Item["pk"], Item["sk"])] = Item

    def delete_item(self, *, Key, ConditionExpression):
        del ConditionExpression  # pragma: no cover - unused in fake implementation
        item_key = (Key["pk"], Key["sk"])
        if item_key not in self.items:
            raise ClientError(
                {
                    "Error": {
                        "Code": "ConditionalCheckFailedException",
                        "Message": "Item not found",
                    }
                },
                "DeleteItem",
            )
        self.items.pop(item_key)


class FakeRosterStore:
    """In-memory roster keyed by the Name column."""

    def __init__(
        self,
        rows: list[dict[str, str]] | None = None,
        mapping: dict[str, str] | None = None,
    ) -> None:
        self.rows = [dict(row) for row in rows or []]
        self.mapping = dict(mapping or {})
        self.writes: list[tuple[str | None, str]] = []
        self.failing: set[str] = set()
        self.fetches = 0
        self.syncs = 0

    def fetch_roster(self, range_selector: str | None = None) -> list[PlayerRecord]:
        self.fetches += 1
        return [build_record(row, discord_mapping=self.mapping) for row in self.rows]

    def write_manual_action(self, record: PlayerRecord, action: str) -> None:
        if record.row_key in self.failing:
            raise RosterError(f"write rejected for {record.row_key}")
        for row in self.rows:
            if row.get(record.row_key_field or "") == record.row_key:
                row["Action"] = action
                self.writes.append((record.row_key, action))
                return
        raise RosterRowNotFoundError(f"No roster row for {record.row_key}")

    def clear_all_manual_actions(self) -> int:
        cleared = 0
        for row in self.rows:
            if row.get("Action"):
                row["Action"] = ""
                cleared += 1
        return cleared

    def copy_source_range(self) -> int:
        self.syncs += 1
        return len(self.rows)


def roster_row(
    name: str, trophies: int, clan: str = "", action: str = "", **extra: str
) -> dict[str, str]:
    row = {"Name": name, "Trophies": str(trophies), "Clan": clan, "Action": action}
    row.update(extra)
    return row


