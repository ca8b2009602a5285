from factories import make_record

from swap_bot.completion import CompletionTracker
from swap_bot.models import RemainingEntry


def mapped_record():
    return make_record("Alpha", 10, player_id="p1", mapping={"p1": "111"})


class TestCompletionTracker:
    def test_toggle_is_its_own_inverse(self):
        tracker = CompletionTracker()

        first = tracker.toggle("Alpha")
        second = tracker.toggle("Alpha")

        assert first.now_complete is True
        assert second.now_complete is False
        assert len(tracker) == 0

    def test_record_uses_discord_id_as_key(self):
        tracker = CompletionTracker()
        record = mapped_record()

        result = tracker.toggle_record(record)

        assert result.key == "111"
        assert "111" in tracker
        assert tracker.is_complete(record)

    def test_legacy_mention_entry_still_matches(self):
        tracker = CompletionTracker(["<@111>"])
        assert tracker.is_complete(mapped_record())

    def test_legacy_entry_containing_id_matches(self):
        tracker = CompletionTracker(["<@!111> Alpha"])
        assert tracker.is_complete(mapped_record())

    def test_untoggle_removes_legacy_aliases(self):
        tracker = CompletionTracker(["<@111>", "<@!111> Alpha"])
        record = mapped_record()

        result = tracker.toggle_record(record)

        assert result.now_complete is False
        assert not tracker.is_complete(record)
        assert len(tracker) == 0

    def test_name_keyed_player(self):
        tracker = CompletionTracker()
        record = make_record("Bravo", 5)

        tracker.mark("Bravo")

        assert tracker.is_complete(record)
        tracker.forget(record)
        assert not tracker.is_complete(record)

    def test_entry_completion_uses_mention_id(self):
        tracker = CompletionTracker(["111"])
        entry = RemainingEntry(
            identifier="<@111>",
            name="Alpha",
            target_clan="RGR",
            completion_key="<@111>",
            mention="<@111>",
        )
        assert tracker.is_entry_complete(entry)

    def test_name_marked_before_discord_mapping_still_matches(self):
        tracker = CompletionTracker()
        tracker.toggle_record(make_record("Alpha", 10, player_id="p1"))
        record = mapped_record()

        assert tracker.is_complete(record)

        result = tracker.toggle_record(record)

        assert result.now_complete is False
        assert not tracker.is_complete(record)
        assert len(tracker) == 0

    def test_pinned_entry_matches_name_marked_before_mapping(self):
        tracker = CompletionTracker(["Alpha"])
        entry = RemainingEntry(
            identifier="<@111>",
            name="Alpha",
            target_clan="RGR",
            completion_key="111",
            mention="<@111>",
            external_id="111",
        )
        assert tracker.is_entry_complete(entry)

    def test_snapshot_and_restore(self):
        tracker = CompletionTracker(["b", "a"])
        assert tracker.snapshot() == ["a", "b"]

        other = CompletionTracker()
        other.restore(tracker.snapshot())
        assert other.snapshot() == ["a", "b"]

        other.reset()
        assert other.snapshot() == []
