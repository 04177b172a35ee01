"""Update severity classification.

An available update is labelled by the first of the major, minor, patch and
revision positions at which it moves ahead of the installed version. A
position also counts when the installed version is too short to have it,
e.g. ``1.0`` -> ``1.0.0.1`` is a patch update. Differences beyond the fourth
component have no category.
"""

from __future__ import annotations

from typing import Optional

from .types import CATEGORY_ORDER, AlertTier, TierAssignment, UpdateCategory
from .version import VersionLike, is_version_newer, parse_version


def classify_update(
    installed: VersionLike, available: VersionLike
) -> Optional[UpdateCategory]:
    """Return the :class:`UpdateCategory` of ``installed`` -> ``available``.

    ``None`` when ``available`` is not strictly newer.
    """

    if not is_version_newer(installed, available):
        return None
    old = parse_version(installed)
    new = parse_version(available)
    for index, category in enumerate(CATEGORY_ORDER):
        if index >= len(new):
            break
        if index >= len(old) or new[index] > old[index]:
            return category
    return None


def resolve_alert_tier(
    category: UpdateCategory, assignment: TierAssignment
) -> AlertTier:
    return assignment.for_category(category)


__all__ = ["classify_update", "resolve_alert_tier"]
