"""Skip-version memory.

Only one skipped version is remembered: skipping a new version replaces the
previous one. Matching uses numeric version equality, so a stored ``"2.0"``
also suppresses ``"2.0.0"``.
"""

from __future__ import annotations

from typing import Optional

from .logging_utils import log_event
from .store import PersistentKV
from .version import VersionLike, versions_equal


def should_suppress(candidate: VersionLike, skipped: Optional[VersionLike]) -> bool:
    if skipped is None or (isinstance(skipped, str) and not skipped.strip()):
        return False
    return versions_equal(candidate, skipped)


class SkipRegistry:
    """Skip state backed by a :class:`PersistentKV` store."""

    def __init__(self, store: PersistentKV) -> None:
        self.store = store

    @property
    def skipped_version(self) -> Optional[str]:
        return self.store.get_skipped_version()

    def is_skipped(self, candidate: VersionLike) -> bool:
        return should_suppress(candidate, self.skipped_version)

    def record_skip(self, version: str) -> None:
        log_event("version_skipped", version=version)
        self.store.set_skipped_version(version)


__all__ = ["should_suppress", "SkipRegistry"]
