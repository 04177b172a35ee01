"""Engine configuration.

:class:`EngineConfig` holds everything an evaluation needs that is not
persisted state: the app identity, the installed version, optional store
country and manifest URL, the per-category alert tiers and the optional OS
compatibility predicate.

The helpers below assemble it for the CLI from three sources, lowest
precedence first:
 - a JSON config file (``--config``)
 - remote JSON defaults (``--config-url``), applied only to options the user
   did not set
 - explicit command-line flags
The bundle identifier falls back to ``UPDATE_SIREN_BUNDLE_ID``.
"""

from __future__ import annotations
import argparse
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from .fetch import http_get_text
from .types import AlertTier, Comparison, TierAssignment
from .ui import warn
from .version import compare_versions

BUNDLE_ID_ENV = "UPDATE_SIREN_BUNDLE_ID"

OsPredicate = Callable[[str], bool]


@dataclass(frozen=True)
class EngineConfig:
    installed_version: Optional[str]
    bundle_id: Optional[str] = None
    country_code: Optional[str] = None
    manifest_url: Optional[str] = None
    tiers: TierAssignment = field(default_factory=TierAssignment)
    app_name: str = ""
    os_compatible: Optional[OsPredicate] = None

    def resolved_bundle_id(self) -> Optional[str]:
        """Configured bundle id, else the environment, else ``None``."""
        value = self.bundle_id or os.environ.get(BUNDLE_ID_ENV)
        value = (value or "").strip()
        return value or None


def os_version_gate(system_version: str) -> OsPredicate:
    """Predicate accepting a store minimum OS version at or below ``system_version``."""

    def _compatible(minimum_os_version: str) -> bool:
        return compare_versions(system_version, minimum_os_version) is not Comparison.LESS_THAN

    return _compatible


def load_config_file(path: Path) -> dict:
    """Read a JSON config file; unreadable or non-object files yield ``{}``."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except Exception as e:
        warn(f"Could not read config file {path}: {e}")
        return {}
    if not isinstance(data, dict):
        warn(f"Could not read config file {path}: invalid format")
        return {}
    return data


def merge_config_defaults(
    args: argparse.Namespace, defaults: argparse.Namespace, data: dict
) -> None:
    """Copy ``data`` keys into ``args`` where the user kept the parser default.

    Keys may use dashes or underscores. Unknown keys are ignored.
    """
    for raw_key, value in data.items():
        k = str(raw_key).replace("-", "_")
        if hasattr(args, k) and getattr(args, k) == getattr(defaults, k, None):
            setattr(args, k, value)


def fetch_remote_defaults(url: str, http=None) -> dict:
    http = http or http_get_text
    body, err = http(url)
    data = None
    if body is not None:
        try:
            data = json.loads(body)
        except ValueError as e:
            err = str(e)
    if not isinstance(data, dict):
        warn(f"Failed to fetch config defaults from {url}: {err}")
        return {}
    return data


def _tier(value) -> Optional[AlertTier]:
    if value is None or value == "":
        return None
    if isinstance(value, AlertTier):
        return value
    return AlertTier.parse(str(value))


def _text(args: argparse.Namespace, name: str) -> Optional[str]:
    # config files may carry numbers (e.g. "installed_version": 1.5)
    value = getattr(args, name, None)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ValueError(f"{name} must be a string, not {type(value).__name__}")
    return str(value)


def config_from_args(args: argparse.Namespace) -> EngineConfig:
    """Build an :class:`EngineConfig` from parsed (and merged) CLI args.

    Raises ``ValueError`` for values of the wrong type or unknown tiers.
    """
    tiers = TierAssignment.build(
        _tier(getattr(args, "alert", None)) or AlertTier.OPTION,
        major=_tier(getattr(args, "major_alert", None)),
        minor=_tier(getattr(args, "minor_alert", None)),
        patch=_tier(getattr(args, "patch_alert", None)),
        revision=_tier(getattr(args, "revision_alert", None)),
    )
    system_version = _text(args, "system_version")
    return EngineConfig(
        installed_version=_text(args, "installed_version"),
        bundle_id=_text(args, "bundle_id"),
        country_code=_text(args, "country"),
        manifest_url=_text(args, "manifest_url"),
        tiers=tiers,
        app_name=_text(args, "app_name") or "",
        os_compatible=os_version_gate(system_version) if system_version else None,
    )


__all__ = [
    "EngineConfig",
    "BUNDLE_ID_ENV",
    "os_version_gate",
    "load_config_file",
    "merge_config_defaults",
    "fetch_remote_defaults",
    "config_from_args",
]
