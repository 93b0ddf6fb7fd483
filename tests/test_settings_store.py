from __future__ import annotations

import json
from pathlib import Path

import pytest

from pysecurestorage.exceptions import SettingsStoreError
from pysecurestorage.models import InspectorSettings
from pysecurestorage.settings_store import JsonFileSettingsStore, MemorySettingsStore


def test_missing_file_loads_fresh_install_values(tmp_path: Path) -> None:
    store = JsonFileSettingsStore(tmp_path / "missing.json")
    assert store.load() == InspectorSettings(hide_null_values=True)


def test_corrupt_file_loads_defaults(tmp_path: Path) -> None:
    path = tmp_path / "prefs.json"
    path.write_text("{not json", encoding="utf-8")
    assert JsonFileSettingsStore(path).load() == InspectorSettings()


def test_save_preserves_foreign_keys(tmp_path: Path) -> None:
    path = tmp_path / "prefs.json"
    path.write_text(json.dumps({"other.tool.theme": "dark"}), encoding="utf-8")
    store = JsonFileSettingsStore(path)

    store.save(InspectorSettings(hide_null_values=True))

    saved = json.loads(path.read_text(encoding="utf-8"))
    assert saved["other.tool.theme"] == "dark"
    assert saved["com.secure_storage_devtool.hide_null_values"] == "true"
    assert store.load().hide_null_values is True


def test_memory_store_counts_saves() -> None:
    store = MemorySettingsStore()
    store.save(InspectorSettings(show_newest_on_top=True))
    store.save(InspectorSettings(show_newest_on_top=True, clear_on_reload=False))

    assert store.save_count == 2
    loaded = store.load()
    assert loaded.show_newest_on_top is True
    assert loaded.clear_on_reload is False


def test_failed_save_removes_temp_file(tmp_path: Path) -> None:
    # A directory at the target path makes the final rename fail.
    path = tmp_path / "prefs.json"
    path.mkdir()

    with pytest.raises(SettingsStoreError):
        JsonFileSettingsStore(path).save(InspectorSettings())

    assert list(tmp_path.iterdir()) == [path]
