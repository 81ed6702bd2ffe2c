"""
HTTP fetch layer for monoctl.
- Fetcher protocol: fetch(url) -> bytes
- HTTPFetcher: requests.Session backed, non-2xx raises FetchError
- MockFetcher: in-memory responses/errors (tests, offline runs)
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Protocol

import requests

from .errors import FetchError
from .settings import get_settings

log = logging.getLogger(__name__)


class Fetcher(Protocol):
    def fetch(self, url: str) -> bytes:
        ...


class HTTPFetcher:
    """
    Blocking GET with a per-request timeout.

    The session is created lazily so constructing a fetcher never touches
    the network.
    """

    def __init__(self, timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        http = get_settings().http
        self.timeout = float(timeout if timeout is not None else http.metadata_timeout_sec)
        self.user_agent = http.user_agent
        self._session = session

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
            self._session.headers["User-Agent"] = self.user_agent
        return self._session

    def fetch(self, url: str) -> bytes:
        try:
            r = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(f"failed to fetch {url}: {e}", url=url) from e

        if not (200 <= r.status_code < 300):
            raise FetchError(
                f"failed to fetch {url}: HTTP {r.status_code}",
                url=url,
                status_code=r.status_code,
            )
        log.debug("fetched %s (%d bytes)", url, len(r.content))
        return r.content


class MockFetcher:
    """Canned responses keyed by URL; unknown URLs behave like a 404."""

    def __init__(self) -> None:
        self.responses: Dict[str, bytes] = {}
        self.errors: Dict[str, Exception] = {}
        self.calls: list = []

    def add_response(self, url: str, data: bytes) -> None:
        self.responses[url] = data

    def add_error(self, url: str, err: Exception) -> None:
        self.errors[url] = err

    def fetch(self, url: str) -> bytes:
        self.calls.append(url)
        if url in self.errors:
            raise self.errors[url]
        if url in self.responses:
            return self.responses[url]
        raise FetchError(f"failed to fetch {url}: HTTP 404", url=url, status_code=404)
