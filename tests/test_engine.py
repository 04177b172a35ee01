import os
import threading
import time
import unittest
from datetime import datetime, timedelta
from unittest import mock

from update_siren.config import BUNDLE_ID_ENV, EngineConfig, os_version_gate
from update_siren.engine import DecisionEngine
from update_siren.fetch import FetchError
from update_siren.store import MemoryStore
from update_siren.types import (
    AlertTier,
    CheckPolicy,
    DecisionKind,
    ErrorKind,
    ManifestInfo,
    ManifestVerdict,
    StoreVersionInfo,
    SuppressReason,
    TierAssignment,
    UpdateCategory,
)

NOW = datetime(2024, 6, 1, 12, 0)
MANIFEST_URL = "https://example.com/version.json"


class FixedClock:
    def __init__(self, now=NOW):
        self.current = now

    def now(self):
        return self.current


class StubFetcher:
    def __init__(self, store=None, manifest=None, store_error=None, manifest_error=None):
        self.store = store or StoreVersionInfo("1.5.0", 1234, "13.0")
        self.manifest = manifest
        self.store_error = store_error
        self.manifest_error = manifest_error
        self.calls = []

    def fetch_store_version(self, bundle_id, country_code=None):
        self.calls.append(("store", bundle_id, country_code))
        if self.store_error is not None:
            raise self.store_error
        return self.store

    def fetch_manifest(self, url):
        self.calls.append(("manifest", url))
        if self.manifest_error is not None:
            raise self.manifest_error
        return self.manifest


def make_engine(fetcher, installed="1.0.0", store=None, clock=None, **config):
    config.setdefault("bundle_id", "com.example.app")
    return DecisionEngine(
        EngineConfig(installed_version=installed, **config),
        fetcher,
        store if store is not None else MemoryStore(),
        clock or FixedClock(),
    )


class StoreBranchTests(unittest.TestCase):
    def test_newer_store_version_shows_default_option_alert(self) -> None:
        fetcher = StubFetcher()
        decision = make_engine(fetcher).evaluate(CheckPolicy.IMMEDIATELY)
        self.assertIs(decision.kind, DecisionKind.SHOW_ALERT)
        self.assertIs(decision.alert_tier, AlertTier.OPTION)
        self.assertEqual(decision.available_version, "1.5.0")
        self.assertIs(decision.category, UpdateCategory.MINOR)
        self.assertEqual(decision.store_app_id, 1234)
        self.assertIn("1.5.0", decision.message)
        self.assertEqual(fetcher.calls, [("store", "com.example.app", None)])

    def test_same_version_needs_no_update(self) -> None:
        decision = make_engine(StubFetcher(), installed="1.5").evaluate()
        self.assertIs(decision.kind, DecisionKind.NO_UPDATE_NEEDED)
        self.assertTrue(decision.is_policy_outcome)

    def test_per_category_tier(self) -> None:
        tiers = TierAssignment.build(AlertTier.SKIP, minor=AlertTier.FORCE)
        decision = make_engine(StubFetcher(), tiers=tiers).evaluate()
        self.assertIs(decision.alert_tier, AlertTier.FORCE)
        patch = StubFetcher(store=StoreVersionInfo("1.0.1", 1))
        self.assertIs(
            make_engine(patch, tiers=tiers).evaluate().alert_tier, AlertTier.SKIP
        )

    def test_none_tier_is_still_an_alert_decision(self) -> None:
        tiers = TierAssignment.build(AlertTier.NONE)
        decision = make_engine(StubFetcher(), tiers=tiers, app_name="Demo").evaluate()
        self.assertIs(decision.kind, DecisionKind.SHOW_ALERT)
        self.assertIs(decision.alert_tier, AlertTier.NONE)
        self.assertEqual(
            decision.message,
            "A new version of Demo is available. Please update to version 1.5.0 now.",
        )

    def test_skipped_version_is_suppressed(self) -> None:
        store = MemoryStore(skipped_version="1.5.0")
        decision = make_engine(StubFetcher(), store=store).evaluate()
        self.assertIs(decision.kind, DecisionKind.SUPPRESSED)
        self.assertIs(decision.reason, SuppressReason.USER_SKIPPED)
        self.assertEqual(decision.available_version, "1.5.0")

    def test_skip_then_evaluate_again(self) -> None:
        engine = make_engine(StubFetcher())
        self.assertIs(engine.evaluate().kind, DecisionKind.SHOW_ALERT)
        engine.record_skip("1.5.0")
        decision = engine.evaluate()
        self.assertIs(decision.reason, SuppressReason.USER_SKIPPED)
        # a newer release than the skipped one is shown again
        engine.fetcher.store = StoreVersionInfo("1.6.0", 1234)
        self.assertIs(engine.evaluate().kind, DecisionKind.SHOW_ALERT)

    def test_difference_beyond_revision_uses_default_tier(self) -> None:
        tiers = TierAssignment.build(AlertTier.SKIP, major=AlertTier.FORCE)
        fetcher = StubFetcher(store=StoreVersionInfo("1.0.0.0.2", 1))
        decision = make_engine(fetcher, installed="1.0.0.0.1", tiers=tiers).evaluate()
        self.assertIs(decision.alert_tier, AlertTier.SKIP)
        self.assertIsNone(decision.category)


class ManifestBranchTests(unittest.TestCase):
    def test_mandatory_forces_and_ignores_skip(self) -> None:
        fetcher = StubFetcher(manifest=ManifestInfo(minimal="1.6.0"))
        store = MemoryStore(skipped_version="1.5.0")
        decision = make_engine(fetcher, store=store, manifest_url=MANIFEST_URL).evaluate()
        self.assertIs(decision.kind, DecisionKind.SHOW_ALERT)
        self.assertIs(decision.alert_tier, AlertTier.FORCE)
        self.assertEqual(decision.available_version, "1.5.0")
        self.assertIs(decision.manifest_verdict, ManifestVerdict.MANDATORY)
        self.assertIn(("manifest", MANIFEST_URL), fetcher.calls)

    def test_mandatory_overrides_configured_tiers(self) -> None:
        fetcher = StubFetcher(manifest=ManifestInfo(minimal="2.0"))
        tiers = TierAssignment.build(AlertTier.NONE)
        decision = make_engine(
            fetcher, tiers=tiers, manifest_url=MANIFEST_URL
        ).evaluate()
        self.assertIs(decision.alert_tier, AlertTier.FORCE)

    def test_mandatory_without_newer_store_version(self) -> None:
        fetcher = StubFetcher(
            store=StoreVersionInfo("1.0.0", 1), manifest=ManifestInfo(minimal="1.6.0")
        )
        decision = make_engine(fetcher, manifest_url=MANIFEST_URL).evaluate()
        self.assertIs(decision.kind, DecisionKind.NO_UPDATE_NEEDED)

    def test_no_signal_reports_no_update_even_if_store_is_newer(self) -> None:
        fetcher = StubFetcher(manifest=ManifestInfo())
        decision = make_engine(fetcher, manifest_url=MANIFEST_URL).evaluate()
        self.assertIs(decision.kind, DecisionKind.NO_UPDATE_NEEDED)
        self.assertIs(decision.manifest_verdict, ManifestVerdict.NO_SIGNAL)
        self.assertEqual(len(fetcher.calls), 2)

    def test_not_required(self) -> None:
        fetcher = StubFetcher(manifest=ManifestInfo(minimal="0.5", notice="0.9"))
        decision = make_engine(fetcher, manifest_url=MANIFEST_URL).evaluate()
        self.assertIs(decision.kind, DecisionKind.NO_UPDATE_NEEDED)
        self.assertIs(decision.manifest_verdict, ManifestVerdict.NOT_REQUIRED)

    def test_advisory_floors_none_tier_to_option(self) -> None:
        fetcher = StubFetcher(manifest=ManifestInfo(notice="1.0.0"))
        tiers = TierAssignment.build(AlertTier.NONE)
        decision = make_engine(
            fetcher, tiers=tiers, manifest_url=MANIFEST_URL
        ).evaluate()
        self.assertIs(decision.alert_tier, AlertTier.OPTION)
        self.assertIs(decision.manifest_verdict, ManifestVerdict.ADVISORY)

    def test_advisory_raises_skip_tier_and_honours_skip(self) -> None:
        fetcher = StubFetcher(manifest=ManifestInfo(notice="1.2"))
        tiers = TierAssignment.build(AlertTier.SKIP)
        engine = make_engine(fetcher, tiers=tiers, manifest_url=MANIFEST_URL)
        self.assertIs(engine.evaluate().alert_tier, AlertTier.OPTION)
        engine.record_skip("1.5.0")
        self.assertIs(engine.evaluate().reason, SuppressReason.USER_SKIPPED)

    def test_advisory_keeps_force_tier(self) -> None:
        fetcher = StubFetcher(manifest=ManifestInfo(notice="1.2"))
        tiers = TierAssignment.build(AlertTier.FORCE)
        decision = make_engine(
            fetcher, tiers=tiers, manifest_url=MANIFEST_URL
        ).evaluate()
        self.assertIs(decision.alert_tier, AlertTier.FORCE)

    def test_no_signal_ignores_os_gate(self) -> None:
        fetcher = StubFetcher(
            store=StoreVersionInfo("3.0", 1, "99.0"), manifest=ManifestInfo()
        )
        engine = make_engine(
            fetcher, manifest_url=MANIFEST_URL, os_compatible=os_version_gate("12.0")
        )
        decision = engine.evaluate()
        self.assertIs(decision.kind, DecisionKind.NO_UPDATE_NEEDED)
        self.assertIs(decision.manifest_verdict, ManifestVerdict.NO_SIGNAL)

    def test_not_required_ignores_missing_minimum_os(self) -> None:
        fetcher = StubFetcher(
            store=StoreVersionInfo("3.0", 1),
            manifest=ManifestInfo(minimal="2.0", notice="2.0.1"),
        )
        engine = make_engine(
            fetcher,
            installed="2.1",
            manifest_url=MANIFEST_URL,
            os_compatible=lambda minimum: True,
        )
        decision = engine.evaluate()
        self.assertIs(decision.kind, DecisionKind.NO_UPDATE_NEEDED)
        self.assertIs(decision.manifest_verdict, ManifestVerdict.NOT_REQUIRED)

    def test_mandatory_still_checks_os(self) -> None:
        fetcher = StubFetcher(manifest=ManifestInfo(minimal="1.6.0"))
        engine = make_engine(
            fetcher, manifest_url=MANIFEST_URL, os_compatible=os_version_gate("12.0")
        )
        decision = engine.evaluate()
        self.assertIs(decision.error, ErrorKind.INCOMPATIBLE_OS_VERSION)
        self.assertIs(decision.manifest_verdict, ManifestVerdict.MANDATORY)

    def test_advisory_with_store_not_newer(self) -> None:
        fetcher = StubFetcher(
            store=StoreVersionInfo("1.0.0", 1), manifest=ManifestInfo(notice="1.0.0")
        )
        decision = make_engine(fetcher, manifest_url=MANIFEST_URL).evaluate()
        self.assertIs(decision.kind, DecisionKind.NO_UPDATE_NEEDED)


class FailureTests(unittest.TestCase):
    def test_missing_bundle_id_is_configuration_error(self) -> None:
        fetcher = StubFetcher()
        store = MemoryStore()
        engine = make_engine(fetcher, store=store, bundle_id=None)
        with mock.patch.dict(os.environ):
            os.environ.pop(BUNDLE_ID_ENV, None)
            decision = engine.evaluate()
        self.assertIs(decision.error, ErrorKind.CONFIGURATION)
        self.assertTrue(decision.is_error)
        self.assertEqual(fetcher.calls, [])
        self.assertIsNone(store.last_check)

    def test_bundle_id_from_environment(self) -> None:
        fetcher = StubFetcher()
        with mock.patch.dict(os.environ, {BUNDLE_ID_ENV: "com.env.app"}):
            make_engine(fetcher, bundle_id=None).evaluate()
        self.assertEqual(fetcher.calls, [("store", "com.env.app", None)])

    def test_missing_installed_version_is_configuration_error(self) -> None:
        decision = make_engine(StubFetcher(), installed="").evaluate()
        self.assertIs(decision.error, ErrorKind.CONFIGURATION)

    def test_store_failure(self) -> None:
        store = MemoryStore()
        fetcher = StubFetcher(
            store_error=FetchError(ErrorKind.STORE_UNAVAILABLE, "offline")
        )
        decision = make_engine(fetcher, store=store).evaluate()
        self.assertIs(decision.kind, DecisionKind.ERROR)
        self.assertIs(decision.error, ErrorKind.STORE_UNAVAILABLE)
        self.assertEqual(decision.message, "offline")
        self.assertFalse(decision.is_policy_outcome)
        self.assertEqual(store.last_check, NOW)

    def test_no_listing_is_distinct(self) -> None:
        fetcher = StubFetcher(store_error=FetchError(ErrorKind.NO_STORE_LISTING))
        self.assertIs(make_engine(fetcher).evaluate().error, ErrorKind.NO_STORE_LISTING)

    def test_manifest_failure_is_terminal(self) -> None:
        fetcher = StubFetcher(
            manifest_error=FetchError(ErrorKind.MANIFEST_UNAVAILABLE, "404")
        )
        decision = make_engine(fetcher, manifest_url=MANIFEST_URL).evaluate()
        self.assertIs(decision.error, ErrorKind.MANIFEST_UNAVAILABLE)
        self.assertEqual([f.source for f in decision.failures], ["manifest"])

    def test_both_failures_are_reported(self) -> None:
        fetcher = StubFetcher(
            store_error=FetchError(ErrorKind.MALFORMED_PAYLOAD),
            manifest_error=FetchError(ErrorKind.MANIFEST_UNAVAILABLE),
        )
        decision = make_engine(fetcher, manifest_url=MANIFEST_URL).evaluate()
        self.assertIs(decision.error, ErrorKind.MALFORMED_PAYLOAD)
        self.assertEqual(
            [(f.source, f.kind) for f in decision.failures],
            [
                ("store", ErrorKind.MALFORMED_PAYLOAD),
                ("manifest", ErrorKind.MANIFEST_UNAVAILABLE),
            ],
        )

    def test_incompatible_os(self) -> None:
        store = MemoryStore()
        engine = make_engine(
            StubFetcher(), store=store, os_compatible=os_version_gate("12.4")
        )
        decision = engine.evaluate()
        self.assertIs(decision.error, ErrorKind.INCOMPATIBLE_OS_VERSION)
        self.assertEqual(store.last_check, NOW)

    def test_compatible_os(self) -> None:
        engine = make_engine(StubFetcher(), os_compatible=os_version_gate("13.0"))
        self.assertIs(engine.evaluate().kind, DecisionKind.SHOW_ALERT)

    def test_os_gate_needs_minimum_os_version(self) -> None:
        fetcher = StubFetcher(store=StoreVersionInfo("1.5.0", 1))
        engine = make_engine(fetcher, os_compatible=lambda minimum: True)
        self.assertIs(engine.evaluate().error, ErrorKind.MALFORMED_PAYLOAD)


class ThrottleAndCommitTests(unittest.TestCase):
    def test_throttled_run_does_not_fetch_or_write(self) -> None:
        last = NOW - timedelta(days=6)
        store = MemoryStore(last_check=last)
        fetcher = StubFetcher()
        decision = make_engine(fetcher, store=store).evaluate(CheckPolicy.WEEKLY)
        self.assertIs(decision.kind, DecisionKind.SUPPRESSED)
        self.assertIs(decision.reason, SuppressReason.TOO_SOON)
        self.assertEqual(fetcher.calls, [])
        self.assertEqual(store.last_check, last)

    def test_due_run_commits_timestamp(self) -> None:
        store = MemoryStore(last_check=NOW - timedelta(days=7))
        make_engine(StubFetcher(), store=store).evaluate(CheckPolicy.WEEKLY)
        self.assertEqual(store.last_check, NOW)

    def test_timestamp_committed_for_every_live_outcome(self) -> None:
        cases = [
            StubFetcher(),
            StubFetcher(store=StoreVersionInfo("1.0.0", 1)),
            StubFetcher(manifest=ManifestInfo()),
        ]
        for fetcher in cases:
            with self.subTest(fetcher=fetcher.store):
                store = MemoryStore()
                make_engine(fetcher, store=store, manifest_url=MANIFEST_URL).evaluate()
                self.assertEqual(store.last_check, NOW)
        store = MemoryStore(skipped_version="1.5.0")
        make_engine(StubFetcher(), store=store).evaluate()
        self.assertEqual(store.last_check, NOW)

    def test_failed_check_still_commits_timestamp(self) -> None:
        store = MemoryStore()
        fetcher = StubFetcher(store_error=FetchError(ErrorKind.NO_STORE_LISTING))
        engine = make_engine(fetcher, store=store)
        self.assertIs(engine.evaluate(CheckPolicy.DAILY).error, ErrorKind.NO_STORE_LISTING)
        self.assertEqual(store.last_check, NOW)
        decision = engine.evaluate(CheckPolicy.DAILY)
        self.assertIs(decision.reason, SuppressReason.TOO_SOON)
        self.assertEqual(len(fetcher.calls), 1)

    def test_daily_policy_second_run_same_day(self) -> None:
        clock = FixedClock()
        store = MemoryStore()
        engine = make_engine(StubFetcher(), store=store, clock=clock)
        self.assertIs(engine.evaluate(CheckPolicy.DAILY).kind, DecisionKind.SHOW_ALERT)
        clock.current = NOW + timedelta(hours=5)
        self.assertIs(engine.evaluate(CheckPolicy.DAILY).reason, SuppressReason.TOO_SOON)
        clock.current = NOW + timedelta(days=1)
        self.assertIs(engine.evaluate(CheckPolicy.DAILY).kind, DecisionKind.SHOW_ALERT)


class ConcurrentFetchTests(unittest.TestCase):
    def test_store_and_manifest_fetched_concurrently(self) -> None:
        barrier = threading.Barrier(2, timeout=2)

        class SlowFetcher(StubFetcher):
            def fetch_store_version(self, bundle_id, country_code=None):
                barrier.wait()
                time.sleep(0.05)
                return super().fetch_store_version(bundle_id, country_code)

            def fetch_manifest(self, url):
                barrier.wait()
                return super().fetch_manifest(url)

        fetcher = SlowFetcher(manifest=ManifestInfo(notice="1.0.0"))
        decision = make_engine(fetcher, manifest_url=MANIFEST_URL).evaluate()
        # the barrier only releases when both fetches are in flight at once
        self.assertIs(decision.kind, DecisionKind.SHOW_ALERT)
        self.assertEqual(len(fetcher.calls), 2)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
