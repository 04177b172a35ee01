from __future__ import annotations

"""Human-readable rendering of decisions.

``new_version_message`` is the text attached to alert decisions (and the only
output for the ``none`` tier). ``render_decision`` is the console presenter
used by the CLI.
"""

from typing import Optional

from .types import AlertTier, Decision, DecisionKind, ErrorKind, SuppressReason
from .ui import err, info, ok, warn

_ERROR_TEXT = {
    ErrorKind.CONFIGURATION: "Missing configuration (bundle identifier or installed version).",
    ErrorKind.STORE_UNAVAILABLE: "Error retrieving App Store data.",
    ErrorKind.MANIFEST_UNAVAILABLE: "Error retrieving the custom version file.",
    ErrorKind.MALFORMED_PAYLOAD: "Error parsing version data.",
    ErrorKind.NO_STORE_LISTING: "The app has no App Store listing for this region.",
    ErrorKind.INCOMPATIBLE_OS_VERSION: "The update requires a newer OS version than this device runs.",
}

_TIER_LABEL = {
    AlertTier.FORCE: "required",
    AlertTier.OPTION: "optional",
    AlertTier.SKIP: "skippable",
    AlertTier.NONE: "silent",
}


def new_version_message(app_name: str, version: Optional[str]) -> str:
    name = app_name or "this app"
    return (
        f"A new version of {name} is available. "
        f"Please update to version {version or 'Unknown'} now."
    )


def error_text(kind: ErrorKind) -> str:
    return _ERROR_TEXT.get(kind, kind.value)


def describe_decision(decision: Decision) -> str:
    """One-line summary of ``decision``."""
    if decision.kind is DecisionKind.SHOW_ALERT:
        label = _TIER_LABEL.get(decision.alert_tier, "")
        category = f" {decision.category.value}" if decision.category else ""
        return (
            f"Update available ({label}{category}): "
            f"{decision.installed_version} -> {decision.available_version}"
        )
    if decision.kind is DecisionKind.SUPPRESSED:
        if decision.reason is SuppressReason.TOO_SOON:
            return "Not checking the version, because it already checked recently."
        return f"Version {decision.available_version} was skipped."
    if decision.kind is DecisionKind.ERROR:
        text = error_text(decision.error)
        return f"{text} ({decision.message})" if decision.message else text
    return "No new update available."


def render_decision(decision: Decision, *, verbose: bool = False) -> None:
    summary = describe_decision(decision)
    if decision.kind is DecisionKind.SHOW_ALERT:
        warn(summary)
        if decision.message:
            info(decision.message)
    elif decision.kind is DecisionKind.ERROR:
        err(summary)
        if verbose:
            for failure in decision.failures:
                err(f"{failure.source}: {failure.kind.value} {failure.message}".rstrip())
    elif decision.kind is DecisionKind.SUPPRESSED:
        info(summary)
    else:
        ok(summary)


__all__ = ["new_version_message", "error_text", "describe_decision", "render_decision"]
