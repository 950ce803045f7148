"""Tests for dismissed and visited group stores."""

from ghinbox.services.dismissal_service import (
    DISMISSED_SLOT,
    VISITED_SLOT,
    DismissalStore,
    VisitedStore,
)

KEY = "octo/repo#https://api.github.com/repos/octo/repo/pulls/1"


class TestDismissalStore:
    def test_dismiss_is_idempotent_and_persisted(self, storage):
        store = DismissalStore(storage)

        assert store.dismiss(KEY) is True
        assert store.dismiss(KEY) is False
        assert storage.read(DISMISSED_SLOT) == [KEY]
        assert DismissalStore(storage).is_dismissed(KEY)

    def test_unknown_key_not_dismissed(self, storage):
        assert DismissalStore(storage).is_dismissed(KEY) is False

    def test_legacy_numeric_ids_discard_whole_collection(self, storage):
        storage.write(DISMISSED_SLOT, ["123456", KEY, 789])

        store = DismissalStore(storage)

        assert store.dismissed_keys == frozenset()
        assert storage.read(DISMISSED_SLOT) == []

    def test_migration_runs_once(self, storage):
        storage.write(DISMISSED_SLOT, ["123456"])
        DismissalStore(storage).dismiss(KEY)

        assert DismissalStore(storage).dismissed_keys == frozenset({KEY})

    def test_clear(self, storage):
        store = DismissalStore(storage)
        store.dismiss(KEY)
        store.clear()

        assert not store.is_dismissed(KEY)
        assert storage.read(DISMISSED_SLOT) is None


class TestVisitedStore:
    def test_mark_and_check(self, storage, clock):
        store = VisitedStore(storage, clock=clock)
        store.mark_visited(KEY)

        assert store.is_visited(KEY)
        assert store.visited_keys() == {KEY}

    def test_entries_expire_after_seven_days(self, storage, clock):
        store = VisitedStore(storage, clock=clock)
        store.mark_visited(KEY)
        clock.advance(7 * 86400)

        assert store.is_visited(KEY) is False
        assert storage.read(VISITED_SLOT) == []

    def test_write_prunes_old_records(self, storage, clock):
        store = VisitedStore(storage, clock=clock)
        store.mark_visited("old")
        clock.advance(8 * 86400)
        store.mark_visited("new")

        assert [r["id"] for r in storage.read(VISITED_SLOT)] == ["new"]

    def test_revisit_refreshes_timestamp(self, storage, clock):
        store = VisitedStore(storage, clock=clock)
        store.mark_visited(KEY)
        clock.advance(6 * 86400)
        store.mark_visited(KEY)
        clock.advance(2 * 86400)

        assert store.is_visited(KEY)
        assert len(storage.read(VISITED_SLOT)) == 1

    def test_malformed_records_are_dropped(self, storage, clock):
        storage.write(VISITED_SLOT, [{"id": "a"}, "junk", {"id": "b", "timestamp": clock.now}])
        store = VisitedStore(storage, clock=clock)

        assert store.visited_keys() == {"b"}

    def test_clear(self, storage, clock):
        store = VisitedStore(storage, clock=clock)
        store.mark_visited(KEY)
        store.clear()

        assert not store.is_visited(KEY)
