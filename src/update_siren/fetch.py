"""Store lookup and manifest fetching.

The engine talks to a :class:`Fetcher`; :class:`UrlFetcher` is the default
implementation. It performs a plain HTTP GET with a short timeout, decodes
JSON and turns the two known payload shapes into typed records:

 - App-store lookup: ``{"results": [{"version", "trackId",
   "minimumOsVersion"}, ...]}``; only the first result is used.
 - Custom manifest: ``{"minimal": "...", "notice": "..."}``.

Every failure is raised as :class:`FetchError` carrying an
:class:`ErrorKind`, so transport problems, empty listings and malformed
payloads stay distinguishable for the caller.
"""

from __future__ import annotations
import json
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Optional, Protocol, Tuple

from .logging_utils import log_event
from .types import ErrorKind, ManifestInfo, StoreVersionInfo

LOOKUP_URL = "https://itunes.apple.com/lookup"
APP_URL = "https://itunes.apple.com/app/id{app_id}"
DEFAULT_TIMEOUT = 10.0


class FetchError(RuntimeError):
    """Raised when a version source cannot be fetched or understood."""

    def __init__(self, kind: ErrorKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind
        self.message = message


class Fetcher(Protocol):
    def fetch_store_version(
        self, bundle_id: str, country_code: Optional[str] = None
    ) -> StoreVersionInfo:
        ...

    def fetch_manifest(self, url: str) -> ManifestInfo:
        ...


def http_get_text(url: str, timeout: float = DEFAULT_TIMEOUT) -> Tuple[Optional[str], Optional[str]]:
    """Fetch a small text document.

    Returns ``(body, error)``: the decoded body and ``None`` on success;
    ``None`` and a short message (e.g. ``"HTTP 404: Not Found"``) on failure.
    """
    try:
        with urllib.request.urlopen(url, timeout=timeout) as resp:
            return resp.read().decode("utf-8", errors="ignore"), None
    except urllib.error.HTTPError as e:
        return None, f"HTTP {e.code}: {e.reason}"
    except Exception as e:
        return None, str(e) or type(e).__name__


def build_lookup_url(bundle_id: str, country_code: Optional[str] = None) -> str:
    """``https://itunes.apple.com/lookup?bundleId=<id>[&country=<cc>]``."""
    query = [("bundleId", bundle_id)]
    if country_code:
        query.append(("country", country_code))
    return f"{LOOKUP_URL}?{urllib.parse.urlencode(query)}"


def build_app_url(store_app_id: int) -> str:
    return APP_URL.format(app_id=store_app_id)


def parse_store_payload(data: Any) -> StoreVersionInfo:
    """Extract the first lookup result from a decoded store payload."""
    if not isinstance(data, dict):
        raise FetchError(ErrorKind.MALFORMED_PAYLOAD, "lookup payload is not an object")
    results = data.get("results")
    if not isinstance(results, list):
        raise FetchError(ErrorKind.MALFORMED_PAYLOAD, "lookup payload has no results list")
    if not results:
        raise FetchError(ErrorKind.NO_STORE_LISTING, "no store listing for this app")
    first = results[0]
    if not isinstance(first, dict):
        raise FetchError(ErrorKind.MALFORMED_PAYLOAD, "first result is not an object")
    app_id = first.get("trackId")
    # bool is an int subclass
    if not isinstance(app_id, int) or isinstance(app_id, bool):
        raise FetchError(ErrorKind.MALFORMED_PAYLOAD, "first result has no trackId")
    version = first.get("version")
    if not isinstance(version, str) or not version.strip():
        raise FetchError(ErrorKind.MALFORMED_PAYLOAD, "first result has no version")
    min_os = first.get("minimumOsVersion")
    return StoreVersionInfo(
        version=version.strip(),
        store_app_id=app_id,
        minimum_os_version=min_os if isinstance(min_os, str) else None,
    )


def parse_manifest_payload(data: Any) -> ManifestInfo:
    """Read ``minimal``/``notice`` from a decoded manifest; other keys are ignored."""
    if not isinstance(data, dict):
        raise FetchError(ErrorKind.MALFORMED_PAYLOAD, "manifest is not an object")

    def _text(key: str) -> Optional[str]:
        value = data.get(key)
        return value.strip() if isinstance(value, str) and value.strip() else None

    return ManifestInfo(minimal=_text("minimal"), notice=_text("notice"))


class UrlFetcher:
    """Default :class:`Fetcher` over ``urllib``."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, http=None) -> None:
        self.timeout = timeout
        self._http = http or http_get_text

    def _get_json(self, url: str, source: str, unavailable: ErrorKind) -> Any:
        body, error = self._http(url, timeout=self.timeout)
        if error is not None or body is None:
            log_event(f"{source}_fetch_failed", source=source, error_type=error)
            raise FetchError(unavailable, error or "empty response")
        try:
            return json.loads(body)
        except ValueError as e:
            log_event(f"{source}_parse_failed", source=source, error_type=str(e))
            raise FetchError(ErrorKind.MALFORMED_PAYLOAD, f"invalid JSON: {e}") from e

    def fetch_store_version(
        self, bundle_id: str, country_code: Optional[str] = None
    ) -> StoreVersionInfo:
        url = build_lookup_url(bundle_id, country_code)
        data = self._get_json(url, "store", ErrorKind.STORE_UNAVAILABLE)
        return parse_store_payload(data)

    def fetch_manifest(self, url: str) -> ManifestInfo:
        data = self._get_json(url, "manifest", ErrorKind.MANIFEST_UNAVAILABLE)
        return parse_manifest_payload(data)


__all__ = [
    "FetchError",
    "Fetcher",
    "UrlFetcher",
    "http_get_text",
    "build_lookup_url",
    "build_app_url",
    "parse_store_payload",
    "parse_manifest_payload",
    "LOOKUP_URL",
    "DEFAULT_TIMEOUT",
]
