"""JSON-file settings store with transcription history and a personal dictionary."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any

from murmur.config import Settings
from murmur.types import HistoryItem

logger = logging.getLogger(__name__)

MAX_HISTORY_ITEMS = 1000

_HISTORY_FIELDS = {f.name for f in fields(HistoryItem)}


class SettingsStore:
    """
    Settings, history and dictionary words persisted in one JSON document.

    ``get``, ``set`` and ``reset`` always return a freshly built ``Settings``
    snapshot; nothing handed out aliases the stored data.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._data = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Cannot read %s (%s), using defaults", self._path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed settings file %s", self._path)
            return {}
        return data

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(self._path.name + ".tmp")
        tmp.write_text(json.dumps(self._data, indent=2, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, self._path)

    def get(self) -> Settings:
        stored = self._data.get("settings")
        if not isinstance(stored, Mapping):
            return Settings()
        try:
            return Settings.from_dict(stored)
        except (TypeError, ValueError) as e:
            logger.warning("Stored settings are invalid (%s), using defaults", e)
            return Settings()

    def set(self, partial: Mapping[str, Any]) -> Settings:
        """
        Merge ``partial`` into the stored settings.

        Raises:
            ValueError: If ``partial`` names an unknown setting or holds an
                invalid value. Nothing is written in that case.
        """
        updated = self.get().merge(partial)
        self._data["settings"] = updated.to_dict()
        self._save()
        logger.info("Settings updated: %s", ", ".join(sorted(partial)))
        return self.get()

    def reset(self) -> Settings:
        self._data["settings"] = Settings().to_dict()
        self._save()
        logger.info("Settings reset to defaults")
        return self.get()

    # History

    def add_history(self, item: HistoryItem) -> None:
        history = self._history()
        history.insert(0, asdict(item))
        del history[MAX_HISTORY_ITEMS:]
        self._data["history"] = history
        self._save()

    def get_history(self, limit: int = 100, offset: int = 0) -> list[HistoryItem]:
        """Most recent first."""
        items = []
        for raw in self._history()[offset : offset + limit]:
            try:
                items.append(HistoryItem(**{k: v for k, v in raw.items() if k in _HISTORY_FIELDS}))
            except TypeError:
                logger.debug("Skipping malformed history entry: %r", raw)
        return items

    def delete_history(self, item_id: str) -> bool:
        history = self._history()
        remaining = [h for h in history if h.get("id") != item_id]
        if len(remaining) == len(history):
            return False
        self._data["history"] = remaining
        self._save()
        return True

    def clear_history(self) -> None:
        self._data["history"] = []
        self._save()

    def _history(self) -> list[dict[str, Any]]:
        history = self._data.get("history")
        if not isinstance(history, list):
            return []
        return [h for h in history if isinstance(h, dict)]

    # Dictionary

    def get_dictionary(self) -> list[str]:
        """Alphabetical."""
        return sorted(self._dictionary())

    def add_to_dictionary(self, word: str) -> list[str]:
        """
        Add ``word`` with surrounding whitespace removed.

        Blank words and words already present are ignored; the file is only
        rewritten when the dictionary changes.
        """
        word = word.strip()
        words = self._dictionary()
        if word and word not in words:
            words.append(word)
            self._data["dictionary"] = words
            self._save()
            logger.info("Added %r to dictionary", word)
        return self.get_dictionary()

    def remove_from_dictionary(self, word: str) -> bool:
        words = self._dictionary()
        remaining = [w for w in words if w != word.strip()]
        if len(remaining) == len(words):
            return False
        self._data["dictionary"] = remaining
        self._save()
        return True

    def _dictionary(self) -> list[str]:
        words = self._data.get("dictionary")
        if not isinstance(words, list):
            return []
        return [w for w in words if isinstance(w, str)]
