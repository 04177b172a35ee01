"""Custom version manifest evaluation.

A manifest is a small JSON document hosted by the app vendor::

    {"minimal": "2.0", "notice": "2.0.1"}

 - installed older than ``minimal``: the update is mandatory
 - installed at or below ``notice``: the update is advised
 - otherwise: nothing to do
 - neither key present: the manifest carries no signal at all
"""

from __future__ import annotations

from .types import Comparison, ManifestInfo, ManifestResolution, ManifestVerdict
from .version import VersionLike, compare_versions


def resolve_manifest(manifest: ManifestInfo, installed: VersionLike) -> ManifestResolution:
    if manifest.is_empty:
        return ManifestResolution(ManifestVerdict.NO_SIGNAL)
    if (
        manifest.minimal is not None
        and compare_versions(installed, manifest.minimal) is Comparison.LESS_THAN
    ):
        return ManifestResolution(ManifestVerdict.MANDATORY, manifest.minimal)
    if (
        manifest.notice is not None
        and compare_versions(installed, manifest.notice) is not Comparison.GREATER_THAN
    ):
        return ManifestResolution(ManifestVerdict.ADVISORY, manifest.notice)
    return ManifestResolution(ManifestVerdict.NOT_REQUIRED)


__all__ = ["resolve_manifest"]
