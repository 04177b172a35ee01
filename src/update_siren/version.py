"""Version comparison helpers.

Implements a purely numeric dotted-version comparator. Strings are split on
``.`` and each component is read as a non-negative integer; anything that is
not a plain run of digits counts as ``0``. The shorter version is padded with
zeros, so ``"1.2"`` and ``"1.2.0"`` compare equal.
"""

from __future__ import annotations

import re
from itertools import zip_longest
from typing import Sequence, Tuple, Union

from .types import Comparison

VersionLike = Union[str, Sequence[int]]

_DIGITS = re.compile(r"^\d+$")


def parse_version(version: VersionLike) -> Tuple[int, ...]:
    """Return the integer components of ``version``.

    Non-numeric tokens (``"beta"``, ``"v1"``, ``""``) become ``0``. Already
    parsed sequences are returned as a tuple unchanged.
    """

    if not isinstance(version, str):
        return tuple(int(part) for part in version)
    parts = []
    for chunk in version.strip().split("."):
        chunk = chunk.strip()
        parts.append(int(chunk) if _DIGITS.match(chunk) else 0)
    return tuple(parts)


def compare_versions(a: VersionLike, b: VersionLike) -> Comparison:
    """Compare ``a`` with ``b`` component by component."""

    for left, right in zip_longest(parse_version(a), parse_version(b), fillvalue=0):
        if left < right:
            return Comparison.LESS_THAN
        if left > right:
            return Comparison.GREATER_THAN
    return Comparison.EQUAL


def is_version_newer(current: VersionLike, candidate: VersionLike) -> bool:
    """Return True if ``candidate`` is strictly newer than ``current``."""

    return compare_versions(candidate, current) is Comparison.GREATER_THAN


def versions_equal(a: VersionLike, b: VersionLike) -> bool:
    return compare_versions(a, b) is Comparison.EQUAL


__all__ = [
    "VersionLike",
    "parse_version",
    "compare_versions",
    "is_version_newer",
    "versions_equal",
]
