"""Tests for the sync checkpoint store."""

import json

from vastlink.infrastructure.state.sync_store import SyncStateStore


class TestSyncStateStore:
    def test_never_synced(self, tmp_path):
        store = SyncStateStore(tmp_path / "state" / "sync_state.json")
        assert store.last_sync() is None
        assert store.load() == {"lastSync": None}

    def test_record_and_read_back(self, tmp_path):
        path = tmp_path / "state" / "sync_state.json"
        store = SyncStateStore(path)

        store.record_sync("2026-10-18T09:30:00Z")

        assert store.last_sync() == "2026-10-18T09:30:00Z"
        assert json.loads(path.read_text()) == {"lastSync": "2026-10-18T09:30:00Z"}
        assert not path.with_name("sync_state.json.tmp").exists()

    def test_unknown_keys_survive(self, tmp_path):
        path = tmp_path / "sync_state.json"
        path.write_text(json.dumps({"lastSync": None, "owner": "laptop"}))
        store = SyncStateStore(path)

        store.record_sync("2026-10-18T10:00:00Z")

        assert json.loads(path.read_text()) == {"lastSync": "2026-10-18T10:00:00Z", "owner": "laptop"}

    def test_corrupt_file_reads_as_never_synced(self, tmp_path):
        path = tmp_path / "sync_state.json"
        path.write_text("{ half")
        assert SyncStateStore(path).last_sync() is None

        path.write_text("[1, 2]")
        assert SyncStateStore(path).last_sync() is None
