"""Tests for sentinel storage."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from keepwarm.storage import (
    PING_ENABLED_KEY,
    InMemoryStorage,
    JsonFileStorage,
    StorageLike,
    get_default_storage,
    should_auto_restart,
)


class TestInMemoryStorage:
    """Tests for InMemoryStorage."""

    def test_get_missing_returns_none(self) -> None:
        assert InMemoryStorage().get_item("nope") is None

    def test_set_get_remove(self) -> None:
        storage = InMemoryStorage()
        storage.set_item("k", "v")
        assert storage.get_item("k") == "v"
        storage.remove_item("k")
        assert storage.get_item("k") is None

    def test_remove_missing_is_noop(self) -> None:
        InMemoryStorage().remove_item("nope")

    def test_satisfies_protocol(self) -> None:
        assert isinstance(InMemoryStorage(), StorageLike)


class TestJsonFileStorage:
    """Tests for JsonFileStorage."""

    def test_missing_file_reads_empty(self, tmp_path: Path) -> None:
        storage = JsonFileStorage(tmp_path / "state.json")
        assert storage.get_item(PING_ENABLED_KEY) is None

    def test_values_survive_a_new_instance(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "state.json"
        JsonFileStorage(path).set_item(PING_ENABLED_KEY, "1")

        assert JsonFileStorage(path).get_item(PING_ENABLED_KEY) == "1"
        assert json.loads(path.read_text(encoding="utf-8")) == {PING_ENABLED_KEY: "1"}

    def test_remove_keeps_other_keys(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        storage = JsonFileStorage(path)
        storage.set_item("other", "x")
        storage.set_item(PING_ENABLED_KEY, "1")
        storage.remove_item(PING_ENABLED_KEY)

        assert storage.get_item(PING_ENABLED_KEY) is None
        assert storage.get_item("other") == "x"

    def test_remove_missing_does_not_create_file(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        JsonFileStorage(path).remove_item(PING_ENABLED_KEY)
        assert not path.exists()

    def test_empty_file_reads_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text("", encoding="utf-8")
        assert JsonFileStorage(path).get_item(PING_ENABLED_KEY) is None

    def test_non_object_file_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ValueError, match="JSON object"):
            JsonFileStorage(path).get_item(PING_ENABLED_KEY)

    def test_malformed_json_raises_value_error(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError):
            should_auto_restart(JsonFileStorage(path))

    def test_no_temp_files_left_behind(self, tmp_path: Path) -> None:
        storage = JsonFileStorage(tmp_path / "state.json")
        storage.set_item("a", "1")
        storage.set_item("b", "2")
        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]


class TestShouldAutoRestart:
    """Tests for should_auto_restart."""

    def test_false_when_absent(self) -> None:
        assert should_auto_restart(InMemoryStorage()) is False

    def test_true_when_sentinel_set(self) -> None:
        storage = InMemoryStorage()
        storage.set_item(PING_ENABLED_KEY, "1")
        assert should_auto_restart(storage) is True

    def test_other_values_do_not_count(self) -> None:
        storage = InMemoryStorage()
        storage.set_item(PING_ENABLED_KEY, "true")
        assert should_auto_restart(storage) is False

    def test_uses_default_storage(self, default_storage: InMemoryStorage) -> None:
        assert get_default_storage() is default_storage
        assert should_auto_restart() is False
        default_storage.set_item(PING_ENABLED_KEY, "1")
        assert should_auto_restart() is True
