"""Update decision engine.

:class:`DecisionEngine` runs one version check per :meth:`evaluate` call and
returns a single :class:`Decision`:

1. configuration check (bundle identifier, installed version)
2. throttle gate for the requested :class:`CheckPolicy`
3. store lookup and, when configured, the custom manifest, fetched
   concurrently and joined
4. manifest verdict; "no signal" and "not required" end here
5. OS compatibility gate on the store record, then the store comparison,
   severity tier (forced for mandatory, at least option for advisory) and
   skip memory
6. last-check timestamp commit, for every outcome past the throttle gate

Only the engine writes the last-check timestamp; the skipped version is
written through :meth:`record_skip` after the user picks "skip this version".
Evaluations for one store must not run concurrently.
"""

from __future__ import annotations

import concurrent.futures
import logging
from datetime import datetime
from typing import List, Optional, Protocol, Tuple

from .config import EngineConfig
from .fetch import FetchError, Fetcher, UrlFetcher
from .logging_utils import log_event
from .manifest import resolve_manifest
from .report import new_version_message
from .severity import classify_update, resolve_alert_tier
from .skip import SkipRegistry
from .store import MemoryStore, PersistentKV
from .throttle import is_check_due
from .types import (
    AlertTier,
    CheckPolicy,
    Decision,
    ErrorKind,
    Failure,
    ManifestInfo,
    ManifestVerdict,
    StoreVersionInfo,
    SuppressReason,
)
from .version import is_version_newer


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Local wall clock (timezone aware)."""

    def now(self) -> datetime:
        return datetime.now().astimezone()


class DecisionEngine:
    def __init__(
        self,
        config: EngineConfig,
        fetcher: Optional[Fetcher] = None,
        store: Optional[PersistentKV] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.config = config
        self.fetcher = fetcher or UrlFetcher()
        self.store = store if store is not None else MemoryStore()
        self.clock = clock or SystemClock()
        self.skips = SkipRegistry(self.store)

    def record_skip(self, version: str) -> None:
        self.skips.record_skip(version)

    def evaluate(self, policy: CheckPolicy = CheckPolicy.IMMEDIATELY) -> Decision:
        bundle_id = self.config.resolved_bundle_id()
        installed = (self.config.installed_version or "").strip()
        if not bundle_id or not installed:
            missing = "bundle identifier" if not bundle_id else "installed version"
            log_event(
                "configuration_error", level=logging.WARNING, error_type=missing
            )
            return Decision.failed(
                ErrorKind.CONFIGURATION,
                installed_version=installed or None,
                message=f"missing {missing}",
            )

        last_checked = self.store.get_last_check_timestamp()
        if not is_check_due(policy, last_checked, self.clock.now()):
            log_event("check_throttled", bundle_id=bundle_id, decision="too_soon")
            return Decision.suppressed(
                SuppressReason.TOO_SOON, installed_version=installed
            )

        store_info, manifest, failures = self._fetch_sources(bundle_id)
        decision = self._decide(installed, store_info, manifest, failures)
        # every live check counts, whatever it decided
        self.store.set_last_check_timestamp(self.clock.now())
        if decision.is_error:
            source = decision.failures[0].source if decision.failures else "store"
            log_event(
                "version_check_failed",
                level=logging.INFO,
                bundle_id=bundle_id,
                source=source,
                error_type=decision.error.value,
            )
        else:
            log_event(
                "version_check_complete",
                bundle_id=bundle_id,
                decision=decision.kind.value,
                version=store_info.version if store_info else None,
            )
        return decision

    def _fetch_sources(
        self, bundle_id: str
    ) -> Tuple[Optional[StoreVersionInfo], Optional[ManifestInfo], List[Failure]]:
        """Fetch the store record and the manifest concurrently; join both."""
        manifest_url = self.config.manifest_url
        failures: List[Failure] = []
        store_info: Optional[StoreVersionInfo] = None
        manifest: Optional[ManifestInfo] = None
        with concurrent.futures.ThreadPoolExecutor(max_workers=2) as executor:
            store_future = executor.submit(
                self.fetcher.fetch_store_version, bundle_id, self.config.country_code
            )
            manifest_future = (
                executor.submit(self.fetcher.fetch_manifest, manifest_url)
                if manifest_url
                else None
            )
            try:
                store_info = store_future.result()
            except FetchError as e:
                failures.append(Failure("store", e.kind, e.message))
            if manifest_future is not None:
                try:
                    manifest = manifest_future.result()
                except FetchError as e:
                    failures.append(Failure("manifest", e.kind, e.message))
        return store_info, manifest, failures

    def _check_os_compatibility(self, store_info: StoreVersionInfo) -> Optional[ErrorKind]:
        predicate = self.config.os_compatible
        if predicate is None:
            return None
        if not store_info.minimum_os_version:
            return ErrorKind.MALFORMED_PAYLOAD
        if not predicate(store_info.minimum_os_version):
            return ErrorKind.INCOMPATIBLE_OS_VERSION
        return None

    def _decide(
        self,
        installed: str,
        store_info: Optional[StoreVersionInfo],
        manifest: Optional[ManifestInfo],
        failures: List[Failure],
    ) -> Decision:
        context = {"installed_version": installed}
        if failures:
            first = failures[0]
            return Decision.failed(
                first.kind,
                message=first.message,
                failures=tuple(failures),
                **context,
            )

        verdict = None
        if manifest is not None:
            verdict = resolve_manifest(manifest, installed).verdict
            context["manifest_verdict"] = verdict
            # the store record plays no part in these verdicts
            if verdict in (ManifestVerdict.NO_SIGNAL, ManifestVerdict.NOT_REQUIRED):
                return Decision.no_update(**context)

        context["store_app_id"] = store_info.store_app_id
        os_error = self._check_os_compatibility(store_info)
        if os_error is not None:
            return Decision.failed(
                os_error, message=store_info.minimum_os_version or "", **context
            )

        available = store_info.version
        if not is_version_newer(installed, available):
            return Decision.no_update(**context)
        category = classify_update(installed, available)
        message = new_version_message(self.config.app_name, available)

        if verdict is ManifestVerdict.MANDATORY:
            # mandatory updates bypass the skip memory
            return Decision.show_alert(
                AlertTier.FORCE,
                available,
                category=category,
                message=message,
                **context,
            )

        tiers = self.config.tiers
        if category is not None:
            tier = resolve_alert_tier(category, tiers)
        else:
            tier = tiers.default
        # advisory updates are never less insistent than option
        if verdict is ManifestVerdict.ADVISORY and tier in (
            AlertTier.SKIP,
            AlertTier.NONE,
        ):
            tier = AlertTier.OPTION

        if self.skips.is_skipped(available):
            return Decision.suppressed(
                SuppressReason.USER_SKIPPED,
                available_version=available,
                category=category,
                **context,
            )
        return Decision.show_alert(
            tier, available, category=category, message=message, **context
        )


__all__ = ["Clock", "SystemClock", "DecisionEngine"]
