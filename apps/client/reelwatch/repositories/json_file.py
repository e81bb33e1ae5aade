"""Durable key-value store backed by a JSON file."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class JsonFileKeyValueStore:
    """String key-value pairs persisted to one JSON object on disk.

    Writes go through a temporary file and ``os.replace`` so a crash never
    leaves a truncated file behind. The cached values only change once the
    write has landed.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()
        self._values: dict[str, str] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        values = {**self._load(), key: value}
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(values, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, self._path)
        self._values = values

    def _load(self) -> dict[str, str]:
        if self._values is not None:
            return self._values

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raw = {}
        except (OSError, ValueError) as exc:
            logger.warning("settings_file.unreadable path=%s reason=%s", self._path, type(exc).__name__)
            raw = {}

        if not isinstance(raw, dict):
            raw = {}
        self._values = {str(key): str(value) for key, value in raw.items()}
        return self._values
