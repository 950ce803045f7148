"""Tests for slot storage and the TTL stores built on it."""

from ghinbox.services.cache_service import ItemTTLStore, TTLStore
from ghinbox.services.storage import StateStorage


class TestStateStorage:
    def test_write_read_delete(self, storage):
        storage.write("slot", {"a": [1, 2]})

        assert storage.read("slot") == {"a": [1, 2]}
        assert storage.delete("slot") is True
        assert storage.read("slot") is None
        assert storage.delete("slot") is False

    def test_persists_across_instances(self, tmp_path):
        first = StateStorage(tmp_path / "s")
        first.write("dismissed_notifications", ["k"])
        first.close()

        second = StateStorage(tmp_path / "s")
        try:
            assert second.read("dismissed_notifications") == ["k"]
        finally:
            second.close()

    def test_slots_filters_by_prefix(self, storage):
        storage.write("github_team_cache", {})
        storage.write("github_team_cache_v3", {})
        storage.write("other", 1)

        assert storage.slots("github_team_cache") == [
            "github_team_cache",
            "github_team_cache_v3",
        ]

    def test_clear(self, storage):
        storage.write("a", 1)
        storage.clear()

        assert storage.slots() == []


class TestTTLStore:
    def test_round_trip_within_ttl(self, storage, clock):
        store = TTLStore(storage, "ns", ttl_seconds=60, clock=clock)
        store.set("k", {"v": 1})
        clock.advance(59)

        assert store.get("k") == {"v": 1}

    def test_expired_entry_is_a_miss_and_evicted(self, storage, clock):
        store = TTLStore(storage, "ns", ttl_seconds=60, clock=clock)
        store.set("k", "v")
        clock.advance(60)

        assert store.get("k") is None
        assert storage.read("ns/k") is None

    def test_one_slot_per_key(self, storage, clock):
        store = TTLStore(storage, "ns", ttl_seconds=60, clock=clock)
        store.set("a", 1)
        store.set("b", 2)

        assert storage.slots("ns/") == ["ns/a", "ns/b"]

    def test_remove_and_clear(self, storage, clock):
        store = TTLStore(storage, "ns", ttl_seconds=60, clock=clock)
        other = TTLStore(storage, "other", ttl_seconds=60, clock=clock)
        store.set("a", 1)
        store.set("b", 2)
        other.set("a", 3)

        store.remove("a")
        assert store.get("a") is None

        store.clear()
        assert store.get("b") is None
        assert other.get("a") == 3

    def test_corrupt_entry_is_a_miss(self, storage, clock):
        storage.write("ns/k", {"unexpected": True})
        store = TTLStore(storage, "ns", ttl_seconds=10, clock=clock)

        assert store.get("k") is None
        assert storage.read("ns/k") is None


class TestItemTTLStore:
    def test_items_expire_independently(self, storage, clock):
        store = ItemTTLStore(storage, "items", ttl_seconds=100, clock=clock)
        store.set_item("old", 1)
        clock.advance(60)
        store.set_item("new", 2)
        clock.advance(50)

        assert store.get_item("old") is None
        assert store.get_item("new") == 2

    def test_write_prunes_expired_siblings(self, storage, clock):
        store = ItemTTLStore(storage, "items", ttl_seconds=100, clock=clock)
        store.set_item("old", 1)
        clock.advance(150)
        store.set_item("new", 2)

        assert set(storage.read("items")["data"]) == {"new"}

    def test_persisted_shape(self, storage, clock):
        store = ItemTTLStore(storage, "items", ttl_seconds=100, clock=clock)
        store.set_item("k", {"x": 1})

        raw = storage.read("items")
        assert raw["written_at"] == clock.now
        assert raw["data"]["k"] == {"value": {"x": 1}, "written_at": clock.now}

    def test_remove_item_and_clear(self, storage, clock):
        store = ItemTTLStore(storage, "items", ttl_seconds=100, clock=clock)
        store.set_item("a", 1)

        assert store.remove_item("a") is True
        assert store.remove_item("a") is False

        store.set_item("b", 2)
        store.clear()
        assert store.get_item("b") is None

    def test_malformed_slot_reads_as_empty(self, storage, clock):
        storage.write("items", ["not", "a", "dict"])
        store = ItemTTLStore(storage, "items", ttl_seconds=100, clock=clock)

        assert store.get_item("a") is None
        store.set_item("a", 1)
        assert store.get_item("a") == 1
