"""Check throttling.

Decides whether a live version check is due for a :class:`CheckPolicy`. Day
differences are counted in calendar days, so a check made late yesterday and
one made early today are one day apart even if fewer than 24 hours elapsed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from .types import CheckPolicy


def days_since(last_checked: datetime, now: datetime) -> int:
    """Whole calendar days between ``last_checked`` and ``now``."""

    if last_checked.tzinfo is not None and now.tzinfo is not None:
        last_checked = last_checked.astimezone(now.tzinfo)
    return (now.date() - last_checked.date()).days


def is_check_due(
    policy: CheckPolicy, last_checked: Optional[datetime], now: datetime
) -> bool:
    if policy is CheckPolicy.IMMEDIATELY:
        return True
    if last_checked is None:
        return True
    return days_since(last_checked, now) >= policy.days


__all__ = ["days_since", "is_check_due"]
