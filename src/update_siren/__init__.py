"""Update prompt decision engine.

Compares an installed app version with the App Store listing and an optional
custom version manifest, and decides whether (and how insistently) the user
should be asked to update. The most used names are re-exported here.
"""

from __future__ import annotations

from .types import (
    AlertTier,
    CheckPolicy,
    Comparison,
    Decision,
    DecisionKind,
    ErrorKind,
    Failure,
    ManifestInfo,
    ManifestResolution,
    ManifestVerdict,
    StoreVersionInfo,
    SuppressReason,
    TierAssignment,
    UpdateCategory,
    UserAction,
)
from .version import compare_versions, is_version_newer, parse_version
from .throttle import is_check_due
from .skip import SkipRegistry, should_suppress
from .severity import classify_update, resolve_alert_tier
from .manifest import resolve_manifest
from .fetch import FetchError, UrlFetcher
from .store import JsonFileStore, MemoryStore
from .config import EngineConfig, os_version_gate
from .engine import DecisionEngine, SystemClock
from .actions import available_actions, handle_user_action

__all__ = [
    "AlertTier",
    "CheckPolicy",
    "Comparison",
    "Decision",
    "DecisionKind",
    "ErrorKind",
    "Failure",
    "ManifestInfo",
    "ManifestResolution",
    "ManifestVerdict",
    "StoreVersionInfo",
    "SuppressReason",
    "TierAssignment",
    "UpdateCategory",
    "UserAction",
    "compare_versions",
    "is_version_newer",
    "parse_version",
    "is_check_due",
    "SkipRegistry",
    "should_suppress",
    "classify_update",
    "resolve_alert_tier",
    "resolve_manifest",
    "FetchError",
    "UrlFetcher",
    "JsonFileStore",
    "MemoryStore",
    "EngineConfig",
    "os_version_gate",
    "DecisionEngine",
    "SystemClock",
    "available_actions",
    "handle_user_action",
]
