"""Google Sheets roster store backed by gspread."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping

import gspread
from gspread.exceptions import APIError, SpreadsheetNotFound, WorksheetNotFound
from gspread.utils import a1_to_rowcol, rowcol_to_a1

from .identity import build_record
from .models import DEFAULT_ALIASES, FieldAliases, PlayerRecord

log = logging.getLogger(__name__)

DEFAULT_RANGE = "Sheet1!A:Z"
DEFAULT_MAPPING_SHEET = "DiscordMap"
_RANGE_START = re.compile(r"^([A-Za-z]+)(\d*)")


class RosterError(RuntimeError):
    """Raised when the roster spreadsheet cannot be read or written."""


class RosterRowNotFoundError(RosterError):
    """Raised when no roster row matches the player being written."""


def split_range(range_selector: str) -> tuple[str, int, int]:
    """Return ``(sheet title, first row, first column)`` for an A1 range."""
    title, _, cells = range_selector.partition("!")
    if not cells:
        return title, 1, 1
    match = _RANGE_START.match(cells.split(":", 1)[0])
    if not match:
        return title, 1, 1
    letters, digits = match.groups()
    _, column = a1_to_rowcol(f"{letters.upper()}1")
    return title, int(digits) if digits else 1, column


def rows_to_fields(
    values: list[list[str]], aliases: FieldAliases = DEFAULT_ALIASES
) -> list[dict[str, str]]:
    """Turn a header row plus data rows into column-keyed dictionaries.

    The column at ``aliases.clan_column_index`` is always exposed as ``Clan``.
    """
    if not values:
        return []
    headers = [str(header).strip() for header in values[0]]
    rows: list[dict[str, str]] = []
    for raw in values[1:]:
        row = {
            header: str(raw[index]) if index < len(raw) else ""
            for index, header in enumerate(headers)
            if header
        }
        index = aliases.clan_column_index
        if index is not None and index < len(raw) and str(raw[index]).strip():
            row["Clan"] = str(raw[index]).strip()
        rows.append(row)
    return rows


class SheetRosterStore:
    def __init__(
        self,
        spreadsheet,
        *,
        range_selector: str = DEFAULT_RANGE,
        mapping_sheet: str = DEFAULT_MAPPING_SHEET,
        aliases: FieldAliases = DEFAULT_ALIASES,
        master_source: str | None = None,
        master_target: str | None = None,
    ) -> None:
        self._spreadsheet = spreadsheet
        self.range_selector = range_selector
        self.mapping_sheet = mapping_sheet
        self.aliases = aliases
        self.master_source = master_source
        self.master_target = master_target

    @classmethod
    def connect(
        cls, sheet_id: str, service_account_path: str, **kwargs
    ) -> SheetRosterStore:
        try:
            client = gspread.service_account(filename=service_account_path)
            spreadsheet = client.open_by_key(sheet_id)
        except (OSError, APIError, SpreadsheetNotFound) as exc:
            raise RosterError(f"Could not open spreadsheet {sheet_id}: {exc}") from exc
        log.info("Connected to roster spreadsheet %s", sheet_id)
        return cls(spreadsheet, **kwargs)

    # ----- Reads -----
    def fetch_rows(self, range_selector: str | None = None) -> list[dict[str, str]]:
        selector = range_selector or self.range_selector
        try:
            resp = self._spreadsheet.values_get(selector)
        except APIError as exc:
            raise RosterError(f"Could not read {selector}: {exc}") from exc
        rows = rows_to_fields(resp.get("values", []), self.aliases)
        log.info("Fetched %s roster rows from %s", len(rows), selector)
        return rows

    def fetch_discord_mapping(self) -> dict[str, str]:
        try:
            resp = self._spreadsheet.values_get(f"{self.mapping_sheet}!A:B")
        except (APIError, WorksheetNotFound) as exc:
            log.warning("Discord map unavailable: %s", exc)
            return {}
        mapping: dict[str, str] = {}
        for row in resp.get("values", [])[1:]:
            if len(row) < 2:
                continue
            player_id, discord_value = str(row[0]).strip(), str(row[1]).strip()
            if player_id and discord_value:
                mapping[player_id] = discord_value
        log.info("Loaded %s Discord name mappings", len(mapping))
        return mapping

    def fetch_roster(self, range_selector: str | None = None) -> list[PlayerRecord]:
        rows = self.fetch_rows(range_selector)
        mapping = self.fetch_discord_mapping() if rows else {}
        return [build_record(row, self.aliases, mapping) for row in rows]

    def available_columns(self) -> list[str]:
        title, first_row, _ = split_range(self.range_selector)
        try:
            resp = self._spreadsheet.values_get(f"{title}!{first_row}:{first_row}")
        except APIError as exc:
            raise RosterError(f"Could not read headers of {title}: {exc}") from exc
        values = resp.get("values", [])
        return [str(header).strip() for header in values[0]] if values else []

    # ----- Writes -----
    def _worksheet(self, title: str):
        try:
            return self._spreadsheet.worksheet(title)
        except WorksheetNotFound as exc:
            raise RosterError(f'Worksheet "{title}" not found') from exc

    def _locate_action_column(self, values: list[list[str]]) -> int:
        headers = [str(header).strip() for header in values[0]] if values else []
        try:
            return headers.index(self.aliases.action_field)
        except ValueError as exc:
            raise RosterError(
                f'Column "{self.aliases.action_field}" not found in roster'
            ) from exc

    def write_manual_action(self, record: PlayerRecord, action: str) -> None:
        """Write ``action`` into the Action cell of ``record``'s roster row."""
        if not record.row_key_field or not record.row_key:
            raise RosterRowNotFoundError("Player has no identifying column")
        title, first_row, first_col = split_range(self.range_selector)
        try:
            values = self._spreadsheet.values_get(self.range_selector).get(
                "values", []
            )
        except APIError as exc:
            raise RosterError(f"Could not read {self.range_selector}: {exc}") from exc
        action_index = self._locate_action_column(values)
        headers = [str(header).strip() for header in values[0]]
        if record.row_key_field not in headers:
            raise RosterRowNotFoundError(
                f'Column "{record.row_key_field}" not found in roster'
            )
        key_index = headers.index(record.row_key_field)

        for offset, raw in enumerate(values[1:], start=1):
            if key_index < len(raw) and str(raw[key_index]).strip() == record.row_key:
                row = first_row + offset
                column = first_col + action_index
                try:
                    self._worksheet(title).update_cell(row, column, action)
                except APIError as exc:
                    raise RosterError(f"Could not write action: {exc}") from exc
                log.info(
                    "Set action of %s to %r (%s)",
                    record.row_key,
                    action,
                    rowcol_to_a1(row, column),
                )
                return
        raise RosterRowNotFoundError(f"No roster row for {record.row_key}")

    def clear_all_manual_actions(self) -> int:
        title, first_row, first_col = split_range(self.range_selector)
        try:
            values = self._spreadsheet.values_get(self.range_selector).get(
                "values", []
            )
        except APIError as exc:
            raise RosterError(f"Could not read {self.range_selector}: {exc}") from exc
        if len(values) < 2:
            return 0
        action_index = self._locate_action_column(values)
        cleared = sum(
            1
            for raw in values[1:]
            if action_index < len(raw) and str(raw[action_index]).strip()
        )
        if not cleared:
            return 0
        column = first_col + action_index
        start = rowcol_to_a1(first_row + 1, column)
        end = rowcol_to_a1(first_row + len(values) - 1, column)
        try:
            self._worksheet(title).batch_clear([f"{start}:{end}"])
        except APIError as exc:
            raise RosterError(f"Could not clear actions: {exc}") from exc
        log.info("Cleared %s manual actions", cleared)
        return cleared

    def copy_source_range(self) -> int:
        """Copy the master source sheet over the working sheet."""
        if not self.master_source or not self.master_target:
            raise RosterError("Master sync sheets are not configured")
        source = self._worksheet(self.master_source)
        target = self._worksheet(self.master_target)
        try:
            values = source.get_all_values()
            target.clear()
            if values:
                target.update(range_name="A1", values=values)
        except APIError as exc:
            raise RosterError(f"Master sync failed: {exc}") from exc
        log.info(
            "Copied %s rows from %s to %s",
            len(values),
            self.master_source,
            self.master_target,
        )
        return len(values)

    def write_discord_mapping(self, player_id: str, discord_value: str) -> bool:
        """Store a Discord name for ``player_id``; returns ``True`` on update."""
        player_id = player_id.strip()
        worksheet = self._worksheet(self.mapping_sheet)
        row = [player_id, discord_value.strip()]
        try:
            existing = worksheet.col_values(1)
            for index, value in enumerate(existing[1:], start=2):
                if str(value).strip() == player_id:
                    worksheet.update(
                        range_name=f"A{index}:B{index}",
                        values=[row],
                        value_input_option="RAW",
                    )
                    log.info("Updated Discord mapping for %s", player_id)
                    return True
            worksheet.append_row(
                row, value_input_option="RAW", insert_data_option="INSERT_ROWS"
            )
        except APIError as exc:
            raise RosterError(f"Could not write Discord mapping: {exc}") from exc
        log.info("Added Discord mapping for %s", player_id)
        return False


def records_from_rows(
    rows: list[Mapping[str, str]],
    aliases: FieldAliases = DEFAULT_ALIASES,
    discord_mapping: Mapping[str, str] | None = None,
) -> list[PlayerRecord]:
    return [build_record(row, aliases, discord_mapping) for row in rows]


__all__ = [
    "DEFAULT_MAPPING_SHEET",
    "DEFAULT_RANGE",
    "RosterError",
    "RosterRowNotFoundError",
    "SheetRosterStore",
    "records_from_rows",
    "rows_to_fields",
    "split_range",
]
