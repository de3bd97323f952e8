from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any

import requests
from requests import Response
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

DEFAULT_USER_AGENT = "ScholarshipMatcher/0.1 (+https://localhost; contact=local)"
logger = logging.getLogger(__name__)

_SLOW_REQUEST_SECONDS = 5.0
_RETRY_STATUSES = (429, 500, 502, 503, 504)
# Writes are never replayed by the adapter.
_IDEMPOTENT_METHODS = frozenset({"GET", "HEAD"})


def build_retry_policy(max_retries: int, backoff_factor: float) -> Retry:
    return Retry(
        total=max_retries,
        connect=max_retries,
        read=max_retries,
        status=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=_RETRY_STATUSES,
        allowed_methods=_IDEMPOTENT_METHODS,
        raise_on_status=False,
    )


@dataclass(slots=True)
class PoliteHttpClient:
    """Shared requests session for the record store and link checks.

    Rate limiting is off unless ``requests_per_second`` is positive; retries
    apply to GET and HEAD only.
    """

    requests_per_second: float = 0.0
    timeout_seconds: float = 20.0
    user_agent: str = DEFAULT_USER_AGENT
    max_retries: int = 0
    backoff_factor: float = 0.5
    default_headers: dict[str, str] = field(default_factory=dict)
    _session: requests.Session = field(init=False, repr=False)
    _next_slot_at: float = field(init=False, default=0.0)
    _throttle: threading.Lock = field(init=False, repr=False)

    def __post_init__(self) -> None:
        session = requests.Session()
        session.headers["User-Agent"] = self.user_agent
        session.headers.update(self.default_headers)
        adapter = HTTPAdapter(max_retries=build_retry_policy(self.max_retries, self.backoff_factor))
        for prefix in ("http://", "https://"):
            session.mount(prefix, adapter)
        self._session = session
        self._next_slot_at = 0.0
        self._throttle = threading.Lock()

    def close(self) -> None:
        self._session.close()

    @property
    def timeout_tuple(self) -> tuple[float, float]:
        connect_timeout = max(1.0, min(self.timeout_seconds, 5.0))
        return connect_timeout, max(connect_timeout, self.timeout_seconds)

    def get_json(self, url: str, *, params: Any = None, headers: dict[str, str] | None = None) -> Any:
        return self._request("GET", url, params=params, headers=headers).json()

    def post_json(
        self,
        url: str,
        *,
        payload: Any,
        params: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        response = self._request("POST", url, params=params, json=payload, headers=headers)
        return response.json() if response.content else None

    def delete(self, url: str, *, params: Any = None) -> None:
        self._request("DELETE", url, params=params)

    def head_status(self, url: str) -> int:
        """Final status code of a HEAD request after redirects; error statuses are returned, not raised."""

        return self._request("HEAD", url, allow_redirects=True, check=False).status_code

    def _request(
        self,
        method: str,
        url: str,
        *,
        params: Any = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
        allow_redirects: bool = True,
        check: bool = True,
    ) -> Response:
        self._wait_for_slot()
        started_at = time.monotonic()
        response = self._session.request(
            method=method,
            url=url,
            params=params,
            json=json,
            headers=headers,
            timeout=self.timeout_tuple,
            allow_redirects=allow_redirects,
        )
        elapsed = time.monotonic() - started_at
        if elapsed > _SLOW_REQUEST_SECONDS:
            logger.warning("Slow HTTP %s %.3fs %s", method, elapsed, url)
        if check:
            response.raise_for_status()
        return response

    def _wait_for_slot(self) -> None:
        if self.requests_per_second <= 0:
            return
        interval = 1.0 / self.requests_per_second
        with self._throttle:
            now = time.monotonic()
            if self._next_slot_at > now:
                time.sleep(self._next_slot_at - now)
                now = self._next_slot_at
            self._next_slot_at = now + interval
