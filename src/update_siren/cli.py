"""Command-line front end.

``update-siren check`` runs one evaluation against the App Store (and an
optional custom manifest) and prints the decision. ``update-siren skip``
records a skipped version and ``update-siren reset`` clears the stored
state. Exit codes for ``check``: 0 nothing to do, 2 update available, 1 error.
"""

from __future__ import annotations
import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .actions import handle_user_action
from .config import (
    config_from_args,
    fetch_remote_defaults,
    load_config_file,
    merge_config_defaults,
)
from .engine import DecisionEngine
from .fetch import DEFAULT_TIMEOUT, UrlFetcher
from .logging_utils import configure_logging, log_event
from .report import render_decision
from .store import DEFAULT_STATE_FILE, JsonFileStore
from .types import AlertTier, CheckPolicy, UserAction
from .skip import SkipRegistry
from .ui import err, info, ok

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_UPDATE = 2

_TIER_CHOICES = [t.value for t in AlertTier]

try:  # pragma: no cover
    from importlib.metadata import version as pkg_version
except Exception:  # pragma: no cover

    def pkg_version(_: str) -> str:  # type: ignore
        raise LookupError


def get_version() -> str:
    """Installed distribution version, ``"0.0.0+unknown"`` when not installed."""
    try:
        return pkg_version("update-siren")
    except Exception:
        return "0.0.0+unknown"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="update-siren",
        description="Decide whether an installed app should prompt for an update",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    general = p.add_argument_group("General")
    general.add_argument(
        "-V", "--version", action="store_true", help="Print version and exit"
    )
    general.add_argument(
        "-v", "--verbose", action="store_true", help="Enable INFO/DEBUG logging"
    )
    general.add_argument(
        "-ll",
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        help="Explicit log level (overrides --verbose)",
    )
    general.add_argument("-f", "--log-file", help="Write logs to a file")
    general.add_argument(
        "-J", "--log-json", action="store_true", help="Also log JSON to stdout"
    )
    general.add_argument(
        "-s",
        "--state-file",
        default=str(DEFAULT_STATE_FILE),
        help="JSON file holding the last check time and skipped version",
    )

    sub = p.add_subparsers(dest="command")

    check = sub.add_parser(
        "check",
        help="Evaluate whether an update prompt should be shown",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    check.add_argument("-b", "--bundle-id", help="App bundle identifier")
    check.add_argument("-i", "--installed-version", help="Installed app version")
    check.add_argument("-c", "--country", help="App Store country code (e.g. us)")
    check.add_argument("-m", "--manifest-url", help="URL of a custom version manifest")
    check.add_argument(
        "-p",
        "--policy",
        default="immediately",
        choices=[cp.name.lower() for cp in CheckPolicy],
        help="How often a live check is allowed",
    )
    check.add_argument(
        "-a", "--alert", choices=_TIER_CHOICES, help="Alert tier for every update category"
    )
    for category in ("major", "minor", "patch", "revision"):
        check.add_argument(
            f"--{category}-alert",
            choices=_TIER_CHOICES,
            help=f"Alert tier for {category} updates (overrides --alert)",
        )
    check.add_argument("-n", "--app-name", help="App name used in the update message")
    check.add_argument(
        "--system-version",
        help="Device OS version; enables the store's minimum OS version check",
    )
    check.add_argument(
        "-t", "--timeout", type=float, default=DEFAULT_TIMEOUT, help="HTTP timeout (s)"
    )
    check.add_argument("--config", help="JSON file with check option defaults")
    check.add_argument("--config-url", help="URL of JSON check option defaults")
    check.add_argument(
        "-r",
        "--respond",
        choices=[a.value for a in UserAction],
        help="Apply this user action when an alert is shown",
    )

    skip = sub.add_parser("skip", help="Remember a version the user chose to skip")
    skip.add_argument("skip_version", metavar="VERSION", help="Version to skip")

    sub.add_parser("reset", help="Forget the last check time and skipped version")
    return p


def _apply_config_sources(
    parser: argparse.ArgumentParser, args: argparse.Namespace
) -> None:
    # Remote defaults win over the config file; explicit flags win over both.
    defaults = parser.parse_args(["check"])
    if args.config_url:
        merge_config_defaults(args, defaults, fetch_remote_defaults(args.config_url))
    if args.config:
        merge_config_defaults(args, defaults, load_config_file(Path(args.config)))


def _run_check(
    parser: argparse.ArgumentParser, args: argparse.Namespace, store: JsonFileStore
) -> int:
    _apply_config_sources(parser, args)
    try:
        config = config_from_args(args)
        policy = CheckPolicy.parse(args.policy)
        timeout = float(args.timeout)
    except (TypeError, ValueError) as e:
        err(str(e))
        return EXIT_ERROR
    engine = DecisionEngine(config, UrlFetcher(timeout=timeout), store)
    decision = engine.evaluate(policy)
    render_decision(decision, verbose=args.verbose)
    if decision.is_error:
        return EXIT_ERROR
    if not decision.has_update:
        return EXIT_OK
    if args.respond:
        try:
            url = handle_user_action(decision, UserAction(args.respond), engine.skips)
        except ValueError as e:
            err(str(e))
            return EXIT_ERROR
        if url:
            info(f"Open {url}")
    return EXIT_UPDATE


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.version:
        print(get_version())
        return EXIT_OK
    configure_logging(args.verbose, args.log_file, args.log_json, args.log_level)
    if not args.command:
        parser.print_help()
        return EXIT_ERROR

    store = JsonFileStore(Path(args.state_file))
    log_event("cli_command", decision=args.command, path=str(store.path))
    if args.command == "skip":
        SkipRegistry(store).record_skip(args.skip_version)
        ok(f"Skipping version {args.skip_version}")
        return EXIT_OK
    if args.command == "reset":
        store.clear()
        ok("Cleared stored update state")
        return EXIT_OK
    return _run_check(parser, args, store)


__all__ = ["main", "build_parser", "get_version"]


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
