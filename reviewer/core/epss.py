"""Best-effort EPSS lookups against the FIRST.org API."""

from __future__ import annotations

import json
import logging
import urllib.parse
import urllib.request
from typing import Any, Callable, Optional

from reviewer.core.errors import EnrichmentFetchError
from reviewer.core.models import EpssRecord
from reviewer.core.severity import to_float

_LOG = logging.getLogger(__name__)

EPSS_API_URL = "https://api.first.org/data/v1/epss"
DEFAULT_TIMEOUT = 10.0

Fetcher = Callable[[str], Optional[EpssRecord]]


def fetch_epss(
    identifier: Optional[str],
    base_url: str = EPSS_API_URL,
    timeout: float = DEFAULT_TIMEOUT,
    opener: Callable[..., Any] = urllib.request.urlopen,
) -> Optional[EpssRecord]:
    """Return the EPSS record for *identifier*, or None if it cannot be fetched.

    Failures are logged and swallowed so that one bad lookup never aborts a run.
    """

    if not identifier:
        return None
    try:
        payload = _request(identifier, base_url, timeout, opener)
        return _parse_payload(payload)
    except EnrichmentFetchError as exc:
        _LOG.warning("Failed to fetch EPSS for %s: %s", identifier, exc)
        return None


def make_fetcher(
    base_url: str = EPSS_API_URL,
    timeout: float = DEFAULT_TIMEOUT,
    opener: Callable[..., Any] = urllib.request.urlopen,
) -> Fetcher:
    def fetch(identifier: str) -> Optional[EpssRecord]:
        return fetch_epss(identifier, base_url=base_url, timeout=timeout, opener=opener)

    return fetch


def offline_fetcher(identifier: str) -> Optional[EpssRecord]:
    return None


def _request(identifier: str, base_url: str, timeout: float, opener: Callable[..., Any]) -> Any:
    url = f"{base_url}?{urllib.parse.urlencode({'cve': identifier})}"
    req = urllib.request.Request(url, headers={"Accept": "application/json"})
    try:
        with opener(req, timeout=timeout) as response:
            body = response.read()
    except Exception as exc:
        raise EnrichmentFetchError(str(exc)) from exc
    try:
        return json.loads(body)
    except (TypeError, ValueError) as exc:
        raise EnrichmentFetchError(f"invalid JSON response: {exc}") from exc


def _parse_payload(payload: Any) -> EpssRecord:
    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, list) or not data or not isinstance(data[0], dict):
        raise EnrichmentFetchError("no EPSS data returned")
    probability = to_float(data[0].get("epss"))
    if probability is None:
        raise EnrichmentFetchError(f"non-numeric epss value {data[0].get('epss')!r}")
    return EpssRecord(probability=probability, percentile=to_float(data[0].get("percentile")))
