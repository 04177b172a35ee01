"""Typed containers for the update decision engine.

These enums and frozen dataclasses describe the inputs (check policy, tier
assignment, fetched records) and the single output (``Decision``) of an
evaluation. They carry no behavior beyond small lookups and predicates so that
every other module can import them without cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import Dict, Optional, Tuple


class Comparison(IntEnum):
    LESS_THAN = -1
    EQUAL = 0
    GREATER_THAN = 1


class CheckPolicy(Enum):
    """How often a live version check is permitted (value is days)."""

    IMMEDIATELY = 0
    DAILY = 1
    WEEKLY = 7

    @property
    def days(self) -> int:
        return self.value

    @classmethod
    def parse(cls, name: str) -> "CheckPolicy":
        key = str(name or "").strip().upper()
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"unknown check policy: {name!r}") from None


class AlertTier(str, Enum):
    """Alert style, ordered from most to least insistent.

    - ``FORCE``: a single "Update" action
    - ``OPTION``: "Update" or "Next time"
    - ``SKIP``: "Update", "Next time" or "Skip this version"
    - ``NONE``: no dialog; the caller receives a message only
    """

    FORCE = "force"
    OPTION = "option"
    SKIP = "skip"
    NONE = "none"

    @classmethod
    def parse(cls, name: str) -> "AlertTier":
        try:
            return cls(str(name or "").strip().lower())
        except ValueError:
            raise ValueError(f"unknown alert tier: {name!r}") from None


class UpdateCategory(str, Enum):
    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    REVISION = "revision"


CATEGORY_ORDER: Tuple[UpdateCategory, ...] = (
    UpdateCategory.MAJOR,
    UpdateCategory.MINOR,
    UpdateCategory.PATCH,
    UpdateCategory.REVISION,
)


@dataclass(frozen=True)
class TierAssignment:
    """Alert tier per update category.

    Build with :meth:`build`: the ``default`` tier is applied to all four
    categories first, then any explicit per-category override replaces it.
    """

    major: AlertTier = AlertTier.OPTION
    minor: AlertTier = AlertTier.OPTION
    patch: AlertTier = AlertTier.OPTION
    revision: AlertTier = AlertTier.OPTION
    default: AlertTier = AlertTier.OPTION

    @classmethod
    def build(
        cls,
        default: AlertTier = AlertTier.OPTION,
        *,
        major: Optional[AlertTier] = None,
        minor: Optional[AlertTier] = None,
        patch: Optional[AlertTier] = None,
        revision: Optional[AlertTier] = None,
    ) -> "TierAssignment":
        base = cls(default, default, default, default, default)
        return base.with_overrides(
            major=major, minor=minor, patch=patch, revision=revision
        )

    def with_overrides(self, **overrides: Optional[AlertTier]) -> "TierAssignment":
        changes: Dict[str, AlertTier] = {}
        for name, tier in overrides.items():
            if name not in {c.value for c in CATEGORY_ORDER}:
                raise ValueError(f"unknown update category: {name!r}")
            if tier is not None:
                changes[name] = tier
        return replace(self, **changes)

    def for_category(self, category: UpdateCategory) -> AlertTier:
        return getattr(self, category.value)


class ManifestVerdict(str, Enum):
    MANDATORY = "mandatory"
    ADVISORY = "advisory"
    NOT_REQUIRED = "not_required"
    NO_SIGNAL = "no_signal"


@dataclass(frozen=True)
class ManifestInfo:
    """Custom version manifest: ``{"minimal": "...", "notice": "..."}``."""

    minimal: Optional[str] = None
    notice: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.minimal is None and self.notice is None


@dataclass(frozen=True)
class ManifestResolution:
    verdict: ManifestVerdict
    threshold: Optional[str] = None


@dataclass(frozen=True)
class StoreVersionInfo:
    """First entry of an app-store lookup."""

    version: str
    store_app_id: int
    minimum_os_version: Optional[str] = None


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    STORE_UNAVAILABLE = "store_unavailable"
    MANIFEST_UNAVAILABLE = "manifest_unavailable"
    MALFORMED_PAYLOAD = "malformed_payload"
    NO_STORE_LISTING = "no_store_listing"
    INCOMPATIBLE_OS_VERSION = "incompatible_os_version"


class SuppressReason(str, Enum):
    TOO_SOON = "too_soon"
    USER_SKIPPED = "user_skipped"


class DecisionKind(str, Enum):
    SHOW_ALERT = "show_alert"
    NO_UPDATE_NEEDED = "no_update_needed"
    SUPPRESSED = "suppressed"
    ERROR = "error"


class UserAction(str, Enum):
    LAUNCH = "launch"
    DISMISS = "dismiss"
    SKIP_VERSION = "skip_version"


@dataclass(frozen=True)
class Failure:
    """One fetch failure observed during an evaluation."""

    source: str
    kind: ErrorKind
    message: str = ""


@dataclass(frozen=True)
class Decision:
    """Terminal result of one evaluation."""

    kind: DecisionKind
    alert_tier: Optional[AlertTier] = None
    available_version: Optional[str] = None
    category: Optional[UpdateCategory] = None
    reason: Optional[SuppressReason] = None
    error: Optional[ErrorKind] = None
    installed_version: Optional[str] = None
    store_app_id: Optional[int] = None
    manifest_verdict: Optional[ManifestVerdict] = None
    message: str = ""
    failures: Tuple[Failure, ...] = field(default_factory=tuple)

    @classmethod
    def show_alert(
        cls, tier: AlertTier, available_version: str, **context
    ) -> "Decision":
        return cls(
            DecisionKind.SHOW_ALERT,
            alert_tier=tier,
            available_version=available_version,
            **context,
        )

    @classmethod
    def no_update(cls, **context) -> "Decision":
        return cls(DecisionKind.NO_UPDATE_NEEDED, **context)

    @classmethod
    def suppressed(cls, reason: SuppressReason, **context) -> "Decision":
        return cls(DecisionKind.SUPPRESSED, reason=reason, **context)

    @classmethod
    def failed(cls, error: ErrorKind, **context) -> "Decision":
        return cls(DecisionKind.ERROR, error=error, **context)

    @property
    def is_error(self) -> bool:
        return self.kind is DecisionKind.ERROR

    @property
    def is_policy_outcome(self) -> bool:
        return self.kind in (DecisionKind.NO_UPDATE_NEEDED, DecisionKind.SUPPRESSED)

    @property
    def has_update(self) -> bool:
        return self.kind is DecisionKind.SHOW_ALERT


__all__ = [
    "Comparison",
    "CheckPolicy",
    "AlertTier",
    "UpdateCategory",
    "CATEGORY_ORDER",
    "TierAssignment",
    "ManifestVerdict",
    "ManifestInfo",
    "ManifestResolution",
    "StoreVersionInfo",
    "ErrorKind",
    "SuppressReason",
    "DecisionKind",
    "UserAction",
    "Failure",
    "Decision",
]
