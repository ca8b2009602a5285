from __future__ import annotations

import pytest

from factories import FakeRosterStore, FakeTable, roster_row


@pytest.fixture
def fake_table() -> FakeTable:
    return FakeTable()


@pytest.fixture
def roster_store() -> FakeRosterStore:
    return FakeRosterStore(
        [
            roster_row("Alpha", 7480, "RND", Player_ID="p1"),
            roster_row("Bravo", 7410, "RGR", "Hold", Player_ID="p2"),
            roster_row("Charlie", 6200, "RND", Player_ID="p3"),
            roster_row("Delta", 5100, "OTL", Player_ID="p4"),
            roster_row("Echo", 100, "RND", "OTL", Player_ID="p5"),
        ],
        mapping={"p1": "111111111111111111"},
    )
