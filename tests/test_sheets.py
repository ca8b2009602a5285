from unittest.mock import MagicMock, patch

import pytest
from gspread.exceptions import APIError, WorksheetNotFound

from factories import make_record

from swap_bot.sheets import (
    RosterError,
    RosterRowNotFoundError,
    SheetRosterStore,
    records_from_rows,
    rows_to_fields,
    split_range,
)

ROSTER_VALUES = [
    ["Player_ID", "Name", "Trophies", "Action", "Team"],
    ["p1", "Alpha", "7480", "", "RND"],
    ["p2", "Bravo", "7410", "Hold", "RGR"],
    ["p3", "Charlie", "6200", "OTL", "RND"],
]


def api_error(message: str = "boom") -> APIError:
    response = MagicMock()
    response.json.return_value = {
        "error": {"code": 500, "message": message, "status": "INTERNAL"}
    }
    return APIError(response)


def build_store(values=None, mapping_values=None, **kwargs):
    spreadsheet = MagicMock()
    worksheet = MagicMock()
    spreadsheet.worksheet.return_value = worksheet

    def values_get(selector):
        if selector.startswith("DiscordMap!"):
            return {"values": mapping_values or []}
        return {"values": ROSTER_VALUES if values is None else values}

    spreadsheet.values_get.side_effect = values_get
    return SheetRosterStore(spreadsheet, **kwargs), spreadsheet, worksheet


class TestSplitRange:
    def test_full_column_range(self):
        assert split_range("Sheet1!A:Z") == ("Sheet1", 1, 1)

    def test_offset_range(self):
        assert split_range("Roster!C3:K200") == ("Roster", 3, 3)

    def test_bare_title(self):
        assert split_range("Roster") == ("Roster", 1, 1)


def test_rows_to_fields_exposes_column_e_as_clan():
    rows = rows_to_fields(ROSTER_VALUES)

    assert rows[0]["Name"] == "Alpha"
    assert rows[0]["Clan"] == "RND"
    assert rows[1]["Action"] == "Hold"
    assert rows_to_fields([]) == []


def test_rows_to_fields_pads_short_rows():
    rows = rows_to_fields([["Name", "Trophies", "Action"], ["Solo"]])
    assert rows == [{"Name": "Solo", "Trophies": "", "Action": ""}]


class TestReads:
    def test_fetch_roster_applies_discord_mapping(self):
        store, _, _ = build_store(
            mapping_values=[["Player_ID", "Discord"], ["p1", "111"], ["p9"]]
        )

        roster = store.fetch_roster()

        assert [record.name for record in roster] == ["Alpha", "Bravo", "Charlie"]
        assert roster[0].mention == "<@111>"
        assert roster[0].current_clan == "RND"
        assert roster[2].manual_action == "OTL"

    def test_missing_mapping_sheet_is_tolerated(self):
        store, spreadsheet, _ = build_store()

        def values_get(selector):
            if selector.startswith("DiscordMap!"):
                raise WorksheetNotFound("DiscordMap")
            return {"values": ROSTER_VALUES}

        spreadsheet.values_get.side_effect = values_get

        assert store.fetch_discord_mapping() == {}
        assert store.fetch_roster()[0].mention is None

    def test_read_failure_becomes_roster_error(self):
        store, spreadsheet, _ = build_store()
        spreadsheet.values_get.side_effect = api_error()

        with pytest.raises(RosterError):
            store.fetch_rows()

    def test_available_columns(self):
        store, spreadsheet, _ = build_store()
        spreadsheet.values_get.side_effect = None
        spreadsheet.values_get.return_value = {"values": [ROSTER_VALUES[0]]}

        assert store.available_columns() == ROSTER_VALUES[0]
        spreadsheet.values_get.assert_called_with("Sheet1!1:1")


class TestWriteManualAction:
    def test_updates_action_cell(self):
        store, spreadsheet, worksheet = build_store()
        record = make_record("Bravo", player_id="p2")

        store.write_manual_action(record, "RND")

        spreadsheet.worksheet.assert_called_with("Sheet1")
        worksheet.update_cell.assert_called_once_with(3, 4, "RND")

    def test_respects_range_offset(self):
        store, _, worksheet = build_store(range_selector="Roster!B2:F50")
        record = make_record("Charlie", player_id="p3")

        store.write_manual_action(record, "")

        worksheet.update_cell.assert_called_once_with(5, 5, "")

    def test_unknown_row(self):
        store, _, worksheet = build_store()

        with pytest.raises(RosterRowNotFoundError):
            store.write_manual_action(make_record("Zulu", player_id="p9"), "Hold")
        worksheet.update_cell.assert_not_called()

    def test_missing_action_column(self):
        store, _, _ = build_store(values=[["Name", "Trophies"], ["Alpha", "1"]])

        with pytest.raises(RosterError):
            store.write_manual_action(make_record("Alpha"), "Hold")

    def test_write_failure_becomes_roster_error(self):
        store, _, worksheet = build_store()
        worksheet.update_cell.side_effect = api_error("quota")

        with pytest.raises(RosterError):
            store.write_manual_action(make_record("Alpha", player_id="p1"), "Hold")


class TestClearAllManualActions:
    def test_clears_action_column(self):
        store, _, worksheet = build_store()

        cleared = store.clear_all_manual_actions()

        assert cleared == 2
        worksheet.batch_clear.assert_called_once_with(["D2:D4"])

    def test_nothing_to_clear(self):
        values = [ROSTER_VALUES[0], ["p1", "Alpha", "7480", "", "RND"]]
        store, _, worksheet = build_store(values=values)

        assert store.clear_all_manual_actions() == 0
        worksheet.batch_clear.assert_not_called()


class TestMasterSync:
    def test_copies_source_values(self):
        store, spreadsheet, _ = build_store(
            master_source="Master_CSV", master_target="Master_Final"
        )
        source, target = MagicMock(), MagicMock()
        source.get_all_values.return_value = [["Name"], ["Alpha"]]
        spreadsheet.worksheet.side_effect = lambda title: {
            "Master_CSV": source,
            "Master_Final": target,
        }[title]

        copied = store.copy_source_range()

        assert copied == 2
        target.clear.assert_called_once_with()
        target.update.assert_called_once_with(
            range_name="A1", values=[["Name"], ["Alpha"]]
        )

    def test_requires_configuration(self):
        store, _, _ = build_store()
        with pytest.raises(RosterError):
            store.copy_source_range()

    def test_missing_worksheet(self):
        store, spreadsheet, _ = build_store(
            master_source="Master_CSV", master_target="Master_Final"
        )
        spreadsheet.worksheet.side_effect = WorksheetNotFound("Master_CSV")

        with pytest.raises(RosterError):
            store.copy_source_range()


class TestWriteDiscordMapping:
    def test_updates_existing_row(self):
        store, _, worksheet = build_store()
        worksheet.col_values.return_value = ["Player_ID", "p1", "p2"]

        updated = store.write_discord_mapping(" p2 ", "someone")

        assert updated is True
        worksheet.update.assert_called_once_with(
            range_name="A3:B3", values=[["p2", "someone"]], value_input_option="RAW"
        )
        worksheet.append_row.assert_not_called()

    def test_appends_new_row(self):
        store, spreadsheet, worksheet = build_store()
        worksheet.col_values.return_value = ["Player_ID"]

        updated = store.write_discord_mapping("p7", "222")

        assert updated is False
        spreadsheet.worksheet.assert_called_with("DiscordMap")
        worksheet.append_row.assert_called_once_with(
            ["p7", "222"], value_input_option="RAW", insert_data_option="INSERT_ROWS"
        )


def test_records_from_rows():
    records = records_from_rows(
        [{"Name": "Alpha", "Player_ID": "p1"}], discord_mapping={"p1": "111"}
    )
    assert records[0].external_id == "111"


def test_connect_wraps_credential_errors():
    with patch(
        "swap_bot.sheets.gspread.service_account",
        side_effect=FileNotFoundError("credentials.json"),
    ):
        with pytest.raises(RosterError):
            SheetRosterStore.connect("sheet-id", "credentials.json")
