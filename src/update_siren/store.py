"""Persisted check state (last check timestamp and skipped version).

The engine only needs two small values to survive between runs. This module
defines the :class:`PersistentKV` contract and two implementations:

 - :class:`MemoryStore` keeps values in memory (tests, embedding hosts that
   persist on their own).
 - :class:`JsonFileStore` keeps them in a small JSON object on disk.

Design notes:
 - Timestamps are written as ISO-8601 strings and parsed back with
   ``datetime.fromisoformat``.
 - ``JsonFileStore`` preserves keys it does not own, so the same file can be
   shared with other host preferences.
 - I/O and decoding errors never raise; they are logged and the store behaves
   as if the value were absent.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import json
import logging
from pathlib import Path
from typing import Optional, Protocol

from .logging_utils import log_event

LAST_CHECK_KEY = "last_version_check"
SKIPPED_VERSION_KEY = "skipped_version"

DEFAULT_STATE_FILE = Path.home() / ".update-siren" / "state.json"


class PersistentKV(Protocol):
    def get_last_check_timestamp(self) -> Optional[datetime]:
        ...

    def set_last_check_timestamp(self, when: datetime) -> None:
        ...

    def get_skipped_version(self) -> Optional[str]:
        ...

    def set_skipped_version(self, version: str) -> None:
        ...


@dataclass
class MemoryStore:
    """In-memory state; nothing survives the process."""

    last_check: Optional[datetime] = None
    skipped_version: Optional[str] = None

    def get_last_check_timestamp(self) -> Optional[datetime]:
        return self.last_check

    def set_last_check_timestamp(self, when: datetime) -> None:
        self.last_check = when

    def get_skipped_version(self) -> Optional[str]:
        return self.skipped_version

    def set_skipped_version(self, version: str) -> None:
        self.skipped_version = version

    def clear(self) -> None:
        self.last_check = None
        self.skipped_version = None


class JsonFileStore:
    """State persisted as a JSON object at ``path``."""

    def __init__(self, path: Path = DEFAULT_STATE_FILE) -> None:
        self.path = Path(path)

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except Exception as e:
            log_event(
                "state_read_failed",
                level=logging.WARNING,
                path=str(self.path),
                error_type=type(e).__name__,
            )
            return {}
        if not isinstance(data, dict):
            log_event(
                "state_read_failed",
                level=logging.WARNING,
                path=str(self.path),
                error_type="invalid format",
            )
            return {}
        return data

    def _write(self, **values) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            data = self._read()
            for key, value in values.items():
                if value is None:
                    data.pop(key, None)
                else:
                    data[key] = value
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except Exception as e:
            log_event(
                "state_write_failed",
                level=logging.WARNING,
                path=str(self.path),
                error_type=type(e).__name__,
            )

    def get_last_check_timestamp(self) -> Optional[datetime]:
        raw = self._read().get(LAST_CHECK_KEY)
        if not isinstance(raw, str):
            return None
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            return None

    def set_last_check_timestamp(self, when: datetime) -> None:
        self._write(**{LAST_CHECK_KEY: when.isoformat()})

    def get_skipped_version(self) -> Optional[str]:
        raw = self._read().get(SKIPPED_VERSION_KEY)
        return raw if isinstance(raw, str) and raw else None

    def set_skipped_version(self, version: str) -> None:
        self._write(**{SKIPPED_VERSION_KEY: version})

    def clear(self) -> None:
        self._write(**{LAST_CHECK_KEY: None, SKIPPED_VERSION_KEY: None})


__all__ = [
    "PersistentKV",
    "MemoryStore",
    "JsonFileStore",
    "DEFAULT_STATE_FILE",
    "LAST_CHECK_KEY",
    "SKIPPED_VERSION_KEY",
]
