"""Persistence for inspector preferences."""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

from pysecurestorage.exceptions import SettingsStoreError
from pysecurestorage.models.settings import InspectorSettings

_logger = logging.getLogger(__name__)


class SettingsStore(Protocol):
    def load(self) -> InspectorSettings:
        ...

    def save(self, settings: InspectorSettings) -> None:
        ...


class MemorySettingsStore:
    """Keeps preferences for the lifetime of the process only."""

    def __init__(self, initial: InspectorSettings | None = None) -> None:
        self._prefs: dict[str, str] = initial.to_preferences() if initial is not None else {}
        self.save_count = 0

    def load(self) -> InspectorSettings:
        return InspectorSettings.from_preferences(self._prefs)

    def save(self, settings: InspectorSettings) -> None:
        self._prefs.update(settings.to_preferences())
        self.save_count += 1


class JsonFileSettingsStore:
    """Stores namespaced string preferences in a JSON file.

    Unknown keys already in the file are preserved, so several tools can
    share one preferences file.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str] | None:
        """Stored preferences; ``{}`` when the file is absent, ``None`` when unreadable."""
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError):
            _logger.debug("Unreadable settings file %s; using defaults", self._path, exc_info=True)
            return None
        if not isinstance(raw, dict):
            return None
        return {str(k): str(v) for k, v in raw.items() if v is not None}

    def load(self) -> InspectorSettings:
        prefs = self._read()
        if prefs is None:
            return InspectorSettings()
        return InspectorSettings.from_preferences(prefs)

    def save(self, settings: InspectorSettings) -> None:
        prefs = self._read() or {}
        prefs.update(settings.to_preferences())
        tmp_name: str | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".settings-", dir=self._path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(prefs, handle, indent=2, sort_keys=True)
            os.replace(tmp_name, self._path)
        except OSError as exc:
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
            raise SettingsStoreError(f"Could not write settings to {self._path}: {exc}") from exc
