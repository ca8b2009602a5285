"""Tests for the presentation and permission helpers in swapbot.py."""

import os
from dataclasses import replace
from types import SimpleNamespace
from unittest.mock import patch

import discord

with patch.dict(
    os.environ,
    {
        "DISCORD_TOKEN": "fake_token",
        "GOOGLE_SHEET_ID": "fake_sheet",
        "SWAP_TABLE_NAME": "test_table",
        "AWS_REGION": "us-east-1",
        "SWAP_ADMIN_ROLE_ID": "555",
    },
):
    import swapbot

from swap_bot.formatting import DoneChoice
from swap_bot.session import BatchOutcome, PlayerOutcome


def member(*, administrator=False, role_ids=()):
    return SimpleNamespace(
        guild_permissions=SimpleNamespace(administrator=administrator),
        roles=[SimpleNamespace(id=role_id) for role_id in role_ids],
    )


class TestIsSwapAdmin:
    def test_administrator_is_allowed(self):
        assert swapbot.is_swap_admin(member(administrator=True))

    def test_swap_admin_role_is_allowed(self):
        assert swapbot.is_swap_admin(member(role_ids=(1, 555)))

    def test_other_members_are_denied(self):
        assert not swapbot.is_swap_admin(member(role_ids=(1, 2)))
        assert not swapbot.is_swap_admin(object())

    def test_without_admin_role_only_administrators_pass(self):
        config = replace(swapbot.CONFIG, admin_role_id=None)
        with patch.object(swapbot, "CONFIG", config):
            assert not swapbot.is_swap_admin(member(role_ids=(555,)))
            assert swapbot.is_swap_admin(member(administrator=True))


def test_describe_batch_lists_successes_and_failures():
    outcome = BatchOutcome(
        succeeded=[PlayerOutcome(query="alpha", ok=True, label="Alpha")],
        failed=[PlayerOutcome(query="nobody", ok=False, error="player not found")],
    )

    text = swapbot.describe_batch(outcome, "Held")

    assert text.splitlines() == [
        "**Held:**",
        "• Alpha",
        "",
        "**Failed:**",
        "• nobody (player not found)",
    ]


def test_describe_batch_empty():
    assert swapbot.describe_batch(BatchOutcome(), "Moved") == "Nothing changed."


def test_describe_toggles_splits_marked_and_unmarked():
    outcome = BatchOutcome(
        succeeded=[
            PlayerOutcome(query="a", ok=True, label="Alpha", now_complete=True),
            PlayerOutcome(query="b", ok=True, label="Bravo", now_complete=False),
        ]
    )

    text = swapbot.describe_toggles(outcome)

    assert "**Marked as done:**\n• Alpha" in text
    assert "**Unmarked:**\n• Bravo" in text


def test_build_summary_embed_fields():
    summary = {
        "groups": {"RGR": 3, "OTL": 2, "RND": 0},
        "total": 5,
        "excluded": 1,
        "unplaced": 4,
        "sort_metric": "Trophies",
    }

    embed = swapbot.build_summary_embed(summary, season="157")

    values = {field.name: field.value for field in embed.fields}
    assert values["🏆 RGR"] == "3 players"
    assert values["🏆 RND"] == "0 players"
    assert values["📊 Total"] == "5 players"
    assert values["🚫 Wildcards"] == "1 players"
    assert "⚠️ Unplaced" in values
    assert "Trophies" in embed.description
    assert "157" in embed.description


def test_build_result_embed_truncates_description():
    embed = swapbot.build_result_embed("Moved", "x" * 5000, ok=False)

    assert embed.title == "❌ Moved"
    assert len(embed.description) == 4096
    assert embed.color == discord.Color.red()


def test_help_embed_lists_every_command():
    embed = swapbot.build_help_embed()

    names = [field.name for field in embed.fields]
    for command in ("/swap", "/move", "/hold", "/include", "/done", "/swapsleft"):
        assert any(name.startswith(f"`{command}") for name in names)


class TestDoneSelectGroups:
    def test_large_clan_is_chunked(self):
        choices = {
            "RGR": [
                DoneChoice(
                    clan="RGR", key=f"k{index}", label=f"P{index}", is_done=False
                )
                for index in range(30)
            ],
            "OTL": [DoneChoice(clan="OTL", key="o", label="O", is_done=False)],
        }

        groups = swapbot.done_select_groups(choices)

        assert [(label, len(entries)) for label, entries in groups] == [
            ("RGR", 25),
            ("RGR (2)", 5),
            ("OTL", 1),
        ]

    def test_duplicate_keys_are_dropped(self):
        choice = DoneChoice(clan="RND", key="dup", label="Dup", is_done=False)

        groups = swapbot.done_select_groups({"RND": [choice, choice]})

        assert groups == [("RND", [choice])]

    def test_every_clan_and_wildcards_get_a_select(self):
        def choices_for(clan, size):
            return [
                DoneChoice(clan=clan, key=f"{clan}{i}", label=f"P{i}", is_done=False)
                for i in range(size)
            ]

        choices = {
            "RGR": choices_for("RGR", 50),
            "OTL": choices_for("OTL", 50),
            "RND": choices_for("RND", 10),
            "WILDCARDS": choices_for("WILDCARDS", 3),
        }

        pages = swapbot.done_select_pages(swapbot.done_select_groups(choices))

        labels = [label for page in pages for label, _ in page]
        assert labels == ["RGR", "RGR (2)", "OTL", "OTL (2)", "RND", "WILDCARDS"]
        assert [len(page) for page in pages] == [5, 1]
        keys = {
            entry.key for page in pages for _, entries in page for entry in entries
        }
        assert len(keys) == 113

    def test_no_groups_means_no_pages(self):
        assert swapbot.done_select_pages([]) == []
