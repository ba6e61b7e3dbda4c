from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any, Callable

import requests

from fleet_compliance.domain.models import RetryPolicy

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class PerThreadSession:
    """
    requests.Session does not promise thread safety; the evaluator calls adapters from
    several pools at once, so each thread gets its own session (and connection pool).
    """

    def __init__(self, factory: Callable[[], requests.Session] = requests.Session):
        self._factory = factory
        self._local = threading.local()

    @property
    def current(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._factory()
            self._local.session = session
        return session

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        return self.current.request(method, url, **kwargs)


def is_retryable(exc: Exception) -> bool:
    """Timeouts, connection errors and 5xx responses are transient; everything else is final."""
    # Narrower than the Reactor retryWhen of the original service, which retried every failure (4xx included).
    if isinstance(exc, (requests.Timeout, requests.ConnectionError)):
        return True
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return 500 <= exc.response.status_code < 600
    return False


def _read_body(resp: requests.Response, deadline: float, url: str) -> bytes:
    body = bytearray()
    while True:
        if time.monotonic() >= deadline:
            raise requests.Timeout(f"Deadline exceeded while reading response from {url}")
        # read1 returns whatever one socket read produced, so a slow trickle is still checked
        chunk = resp.raw.read1(CHUNK_SIZE, decode_content=True)
        if not chunk:
            return bytes(body)
        body += chunk


def fetch_json(
    session: requests.Session,
    method: str,
    url: str,
    timeout_seconds: float,
    **kwargs: Any,
) -> Any:
    """
    One HTTP call whose whole duration (connect, headers, body) is bounded by timeout_seconds.
    Raises requests.Timeout when the deadline passes, requests.JSONDecodeError on a bad body.
    """
    deadline = time.monotonic() + timeout_seconds
    resp = session.request(method, url, timeout=timeout_seconds, stream=True, **kwargs)
    try:
        resp.raise_for_status()
        raw = _read_body(resp, deadline, url)
    finally:
        resp.close()

    try:
        return json.loads(raw)
    except ValueError as e:
        doc = raw.decode("utf-8", errors="replace")
        raise requests.JSONDecodeError(str(e), doc, getattr(e, "pos", 0)) from e


def request_json(
    session: requests.Session,
    method: str,
    url: str,
    policy: RetryPolicy,
    *,
    describe: str = "",
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any,
) -> Any:
    """
    Execute one HTTP call under a fixed-delay retry policy and return the decoded JSON body.
    Each attempt gets its own policy.timeout_seconds deadline.
    The last exception is re-raised once attempts are exhausted.
    """
    label = describe or f"{method} {url}"

    for attempt in range(1, policy.attempts + 1):
        try:
            return fetch_json(session, method, url, policy.timeout_seconds, **kwargs)
        except requests.RequestException as e:
            if not is_retryable(e) or attempt >= policy.attempts:
                raise
            logger.warning("Retrying %s, attempt: %d (%s)", label, attempt + 1, e)
            if policy.delay_seconds > 0:
                sleep(policy.delay_seconds)

    # attempts is always >= 1, the loop either returns or raises
    raise RuntimeError(f"No attempt made for {label}")
