from factories import make_record

from swap_bot.completion import CompletionTracker
from swap_bot.distribution import distribute
from swap_bot.formatting import (
    DONE_MARK,
    completion_choices,
    compute_remaining,
    format_distribution,
    split_message,
)


def sample_result(season="157"):
    records = [
        make_record("Alpha", 7480, "RND", player_id="p1", mapping={"p1": "111"}),
        make_record("Bravo_X", 7410, "RND"),
        make_record("Charlie", 6200, "RGR"),
        make_record("Held", 50, "OTL", "Hold"),
        make_record("Mover", 40, "RND", "OTL"),
        make_record("Odd", 30, "RND", "Stop"),
    ]
    return distribute(records, "Trophies", season, capacity=2)


class TestFormatDistribution:
    def test_three_blocks_with_title_and_footer(self):
        blocks = format_distribution(sample_result(), CompletionTracker())

        assert len(blocks) == 3
        assert "**SWAP LIST SEASON 157**" in blocks[0]
        assert "**to RGR (2):**" in blocks[0]
        assert "- <@111> Alpha 7480" in blocks[0]
        assert "Bravo\\_X 7410" in blocks[0]
        assert blocks[1].startswith("**to OTL")
        assert "**to RND" in blocks[2]
        assert "18-HOUR-RULE" in blocks[2]

    def test_wildcards_section(self):
        blocks = format_distribution(sample_result(), CompletionTracker())

        assert "**WILDCARDS (3):**" in blocks[2]
        assert "- Held stays in OTL" in blocks[2]
        assert "- Mover moves to OTL" in blocks[2]
        assert "- Odd keeps action Stop" in blocks[2]

    def test_done_marks(self):
        tracker = CompletionTracker(["111", "Mover"])

        blocks = format_distribution(sample_result(), tracker)

        assert f"- <@111> Alpha 7480 {DONE_MARK}" in blocks[0]
        assert f"- Mover moves to OTL {DONE_MARK}" in blocks[2]

    def test_season_fallback(self):
        blocks = format_distribution(
            sample_result(season=None), CompletionTracker(), default_season="160"
        )
        assert "SEASON 160" in blocks[0]

        blocks = format_distribution(sample_result(season=None), CompletionTracker())
        assert "SEASON 156" in blocks[0]

    def test_empty_group(self):
        result = distribute([make_record("Solo", 5)], "Trophies")
        blocks = format_distribution(result, CompletionTracker())
        assert "_No players_" in blocks[1]


class TestComputeRemaining:
    def test_lists_moves_and_move_overrides(self):
        view = compute_remaining(sample_result(), CompletionTracker())

        targets = [(entry.name, entry.target_clan) for entry in view.players]
        assert targets == [
            ("Alpha", "RGR"),
            ("Bravo_X", "RGR"),
            ("Charlie", "RND"),
            ("Mover", "OTL"),
        ]
        assert view.total_count == 4
        assert view.remaining_count == 4
        assert not view.all_done
        assert "Total players remaining: **4** / 4" in view.text
        assert "• <@111> Alpha - Please move to **RGR**" in view.text

    def test_hide_completed(self):
        tracker = CompletionTracker(["111"])

        view = compute_remaining(sample_result(), tracker, hide_completed=True)

        assert [entry.name for entry in view.players] == ["Bravo_X", "Charlie", "Mover"]
        assert view.total_count == 4
        assert view.remaining_count == 3

    def test_pinned_membership_is_stable(self):
        tracker = CompletionTracker()
        pinned = compute_remaining(sample_result(), tracker).players

        smaller = distribute([make_record("Newcomer", 9000)], "Trophies")
        tracker.mark("111")
        view = compute_remaining(smaller, tracker, pinned)

        assert [entry.name for entry in view.players] == [
            entry.name for entry in pinned
        ]
        assert view.players[0].is_done
        assert view.remaining_count == 3
        assert pinned[0].is_done is False

    def test_all_done(self):
        result = distribute([make_record("Only", 5, "RND")], "Trophies")
        tracker = CompletionTracker(["Only"])

        view = compute_remaining(result, tracker)

        assert view.all_done
        assert "All swaps are complete" in view.text

    def test_no_distribution(self):
        view = compute_remaining(None, CompletionTracker())
        assert view.total_count == 0
        assert not view.all_done


def test_completion_choices_groups_by_clan():
    tracker = CompletionTracker(["111"])

    choices = completion_choices(sample_result(), tracker)

    assert [choice.label for choice in choices["RGR"]] == [
        f"{DONE_MARK} Alpha",
        "Bravo_X",
    ]
    assert choices["RGR"][0].key == "111"
    assert [choice.label for choice in choices["WILDCARDS"]] == ["Held", "Mover", "Odd"]


class TestSplitMessage:
    def test_short_text_is_single_chunk(self):
        assert split_message("one\ntwo") == ["one\ntwo\n"]

    def test_splits_on_line_boundaries(self):
        text = "\n".join(f"line {index:03d}" for index in range(300))

        chunks = split_message(text, limit=200)

        assert all(len(chunk) <= 200 for chunk in chunks)
        assert "".join(chunks) == text + "\n"

    def test_long_line_is_hard_split(self):
        chunks = split_message("x" * 450, limit=200)
        assert all(len(chunk) <= 200 for chunk in chunks)
        assert "".join(chunks).replace("\n", "") == "x" * 450

    def test_empty(self):
        assert split_message("") == []

