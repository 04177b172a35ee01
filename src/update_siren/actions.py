"""Routing of the user's answer to an update alert.

Each alert tier offers a fixed set of actions:

 - ``force``: launch the store
 - ``option``: launch the store, or dismiss until next time
 - ``skip``: launch, dismiss, or skip this version
 - ``none``: no dialog, so no actions
"""

from __future__ import annotations

from typing import Optional, Tuple

from .fetch import build_app_url
from .logging_utils import log_event
from .skip import SkipRegistry
from .types import AlertTier, Decision, DecisionKind, UserAction

_ACTIONS = {
    AlertTier.FORCE: (UserAction.LAUNCH,),
    AlertTier.OPTION: (UserAction.LAUNCH, UserAction.DISMISS),
    AlertTier.SKIP: (UserAction.LAUNCH, UserAction.DISMISS, UserAction.SKIP_VERSION),
    AlertTier.NONE: (),
}


def available_actions(tier: AlertTier) -> Tuple[UserAction, ...]:
    return _ACTIONS[tier]


def handle_user_action(
    decision: Decision, action: UserAction, registry: SkipRegistry
) -> Optional[str]:
    """Apply ``action`` for an alert ``decision``.

    Returns the store URL to open for ``LAUNCH`` (``None`` when the store id
    is unknown) and ``None`` otherwise. Skipping writes the alert's version to
    the skip registry. Raises ``ValueError`` for non-alert decisions and for
    actions the alert tier does not offer.
    """
    if decision.kind is not DecisionKind.SHOW_ALERT:
        raise ValueError(f"no user action applies to a {decision.kind.value} decision")
    if action not in available_actions(decision.alert_tier):
        raise ValueError(
            f"{action.value} is not offered by a {decision.alert_tier.value} alert"
        )
    log_event("user_action", decision=action.value, version=decision.available_version)
    if action is UserAction.LAUNCH:
        if decision.store_app_id is None:
            return None
        return build_app_url(decision.store_app_id)
    if action is UserAction.SKIP_VERSION:
        registry.record_skip(decision.available_version)
    return None


__all__ = ["available_actions", "handle_user_action"]
