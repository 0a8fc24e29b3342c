"""Tests for durable current-video selection stores."""

import json
from pathlib import Path

import pytest

from video_library.services.selection import (
    SELECTION_KEY,
    FileSelectionStore,
    MemorySelectionStore,
)


class TestKeys:
    """Tests for selection key namespacing."""

    def test_namespaced_by_owner(self) -> None:
        assert MemorySelectionStore().key_for("user-a") == f"{SELECTION_KEY}:user-a"

    def test_profile_wide_key(self) -> None:
        assert MemorySelectionStore(namespace_by_owner=False).key_for("user-a") == SELECTION_KEY

    def test_owners_do_not_share_selection(self) -> None:
        store = MemorySelectionStore()
        store.set("user-a", "v1")

        assert store.get("user-a") == "v1"
        assert store.get("user-b") is None

    def test_profile_wide_selection_is_shared(self) -> None:
        store = MemorySelectionStore(namespace_by_owner=False)
        store.set("user-a", "v1")

        assert store.get("user-b") == "v1"


class TestMemorySelectionStore:
    def test_set_get_clear(self) -> None:
        store = MemorySelectionStore()
        store.set("user-a", "v1")
        store.set("user-a", "v2")
        assert store.get("user-a") == "v2"

        store.clear("user-a")
        store.clear("user-a")
        assert store.get("user-a") is None
        assert store.items() == {}


class TestFileSelectionStore:
    """Tests for the JSON file selection store."""

    def test_missing_file_reads_empty(self, tmp_path: Path) -> None:
        store = FileSelectionStore(tmp_path / "selection.json")
        assert store.get("user-a") is None

    def test_persists_across_instances(self, tmp_path: Path) -> None:
        """Test a selection survives a restart."""
        path = tmp_path / "state" / "selection.json"
        FileSelectionStore(path).set("user-a", "v1")

        assert FileSelectionStore(path).get("user-a") == "v1"
        assert json.loads(path.read_text()) == {f"{SELECTION_KEY}:user-a": "v1"}

    def test_clear_removes_only_owner_key(self, tmp_path: Path) -> None:
        path = tmp_path / "selection.json"
        store = FileSelectionStore(path)
        store.set("user-a", "v1")
        store.set("user-b", "v2")

        store.clear("user-a")

        assert store.get("user-a") is None
        assert store.get("user-b") == "v2"

    def test_no_temp_file_left(self, tmp_path: Path) -> None:
        path = tmp_path / "selection.json"
        FileSelectionStore(path).set("user-a", "v1")

        assert sorted(p.name for p in tmp_path.iterdir()) == ["selection.json"]

    @pytest.mark.parametrize("content", ["{not json", "[1, 2]", ""])
    def test_corrupt_file_reads_empty(self, tmp_path: Path, content: str) -> None:
        """Test a damaged file is treated as no selection and is repaired on write."""
        path = tmp_path / "selection.json"
        path.write_text(content)
        store = FileSelectionStore(path)

        assert store.get("user-a") is None
        store.set("user-a", "v1")
        assert store.get("user-a") == "v1"

    def test_clear_without_file_does_not_create_it(self, tmp_path: Path) -> None:
        path = tmp_path / "selection.json"
        FileSelectionStore(path).clear("user-a")

        assert not path.exists()
