"""Raw layer: item store HTTP extraction.

Each collection is read with ``GET {base}/items/{collection}?limit=-1`` and
is expected to answer with ``{"data": [record, ...]}``.

Sources come in two flavours:

- **critical** (``sales_invoice``, ``sales_return``): 3 attempts, 2s apart.
  Exhausting them raises CriticalSourceError and aborts the request.
- **optional** (``salesman``, ``division``, ``customer``, ``branches``):
  2 attempts, 0.5s apart. Exhausting them yields an empty, degraded
  SourceResult and a warning; the request carries on.

All six reads run concurrently on a thread pool. The backoff sleep happens
inside one source's retry loop and never holds up its siblings. Each attempt
has a wall-clock deadline of ``config.timeout`` on top of the session's
socket timeout.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Any, TypeVar

import requests

from sales_bi.config import SourceConfig
from sales_bi.exceptions import CriticalSourceError, ExtractionError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RawRecord = dict[str, Any]

CRITICAL_SOURCES = ("sales_invoice", "sales_return")
OPTIONAL_SOURCES = ("salesman", "division", "customer", "branches")
ALL_SOURCES = CRITICAL_SOURCES + OPTIONAL_SOURCES

UNBOUNDED_LIMIT = -1


# --- HTTP session ---
def make_session(config: SourceConfig) -> requests.Session:
    """Create a requests Session with JSON headers and a default timeout.

    Retries are not delegated to the transport adapter: each source drives
    its own attempts through fetch_with_retry so critical and optional
    sources can follow different policies.

    Args:
        config: SourceConfig providing the timeout and optional access token.

    Returns:
        Configured requests.Session object.

    """
    s = requests.Session()
    s.headers.update({"Accept": "application/json", "Content-Type": "application/json"})
    if config.access_token:
        s.headers["Authorization"] = f"Bearer {config.access_token}"
    # Default timeouts via a wrapper
    orig_request = s.request

    def timed_request(method: str, url: str, **kwargs: Any) -> requests.Response:
        kwargs.setdefault("timeout", config.timeout)
        return orig_request(method, url, **kwargs)

    s.request = timed_request  # type: ignore[method-assign,assignment]
    return s


# --- Retry state machine ---
@dataclass(frozen=True)
class RetryPolicy:
    """How many times a source is attempted and how long to wait in between.

    Attributes:
        max_retries: Total number of attempts (>= 1).
        delay: Fixed backoff in seconds between two attempts.
        critical: Whether exhausting the attempts must abort the request.
    """

    max_retries: int
    delay: float
    critical: bool = False

    @classmethod
    def for_source(cls, config: SourceConfig, critical: bool) -> RetryPolicy:
        """Build the critical or optional policy from configuration."""
        if critical:
            return cls(config.critical_retries, config.critical_delay, critical=True)
        return cls(config.optional_retries, config.optional_delay, critical=False)


@dataclass
class FetchAttemptState:
    """Progress of one bounded retry loop.

    The loop moves through ``attempt = 1..max_retries``; every failure
    records ``last_error`` and, unless the budget is spent, waits ``delay``
    seconds before the next attempt.
    """

    max_retries: int
    delay: float
    attempt: int = 0
    last_error: str | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_retries

    def record_failure(self, error: str) -> None:
        self.last_error = error
        self.errors.append(error)


def fetch_with_retry(
    read: Callable[[], T],
    policy: RetryPolicy,
    *,
    label: str,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``read`` until it succeeds or the policy's attempts run out.

    Only ExtractionError is treated as a failed attempt; any other exception
    is a programming error and propagates immediately.

    Args:
        read: Zero-argument callable performing one attempt.
        policy: RetryPolicy with attempt count and backoff delay.
        label: Name used in log messages (usually the collection name).
        sleep: Blocking delay function, injectable for tests.

    Returns:
        Whatever ``read`` returned on the first successful attempt.

    Raises:
        ExtractionError: After the last attempt failed. The message carries
            the last error; ``__cause__`` is the last underlying exception.

    """
    state = FetchAttemptState(max_retries=policy.max_retries, delay=policy.delay)
    last_exc: ExtractionError | None = None

    while not state.exhausted:
        state.attempt += 1
        logger.info("Fetching %s (attempt %d/%d)", label, state.attempt, state.max_retries)
        try:
            result = read()
        except ExtractionError as e:
            last_exc = e
            state.record_failure(str(e))
            if state.exhausted:
                break
            logger.warning(
                "Attempt %d/%d for %s failed: %s; retrying in %.1fs",
                state.attempt,
                state.max_retries,
                label,
                e,
                state.delay,
            )
            sleep(state.delay)
            continue
        logger.debug("Attempt %d for %s succeeded", state.attempt, label)
        return result

    raise ExtractionError(
        f"{label}: {state.attempt} attempt(s) failed, last error: {state.last_error}"
    ) from last_exc


# --- Collection reads ---
def _run_with_deadline(call: Callable[[], T], timeout: float, label: str) -> T:
    """Run one attempt on a helper thread and fail it after ``timeout`` seconds.

    The session's socket timeout bounds each read; this bounds the attempt
    as a whole, so a response trickling in byte by byte still times out.
    An abandoned attempt keeps its thread until the pending read returns;
    its result is discarded.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"read-{label}")
    try:
        return executor.submit(call).result(timeout=timeout)
    except FutureTimeoutError as e:
        raise ExtractionError(f"{label} timed out after {timeout:g}s") from e
    finally:
        executor.shutdown(wait=False)


def _get_payload(session: requests.Session, url: str, collection: str, timeout: float) -> Any:
    """GET one collection and decode the JSON body."""
    try:
        resp = session.get(url, params={"limit": UNBOUNDED_LIMIT})
    except requests.Timeout as e:
        raise ExtractionError(f"{collection} timed out after {timeout:g}s") from e
    except requests.RequestException as e:
        raise ExtractionError(f"{collection} transport error: {e}") from e

    if resp.status_code == 503:
        raise ExtractionError(f"{collection} service unavailable (HTTP 503)")
    if not (200 <= resp.status_code < 300):
        raise ExtractionError(f"{collection} returned HTTP {resp.status_code}")

    try:
        return resp.json()
    except ValueError as e:
        raise ExtractionError(f"{collection} returned a non-JSON body") from e


def _read_collection_once(
    session: requests.Session, config: SourceConfig, collection: str
) -> list[RawRecord]:
    """Perform one deadline-bounded GET of a collection and unwrap ``data``."""
    url = config.collection_url(collection)
    payload = _run_with_deadline(
        lambda: _get_payload(session, url, collection, config.timeout),
        config.timeout,
        collection,
    )

    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, list):
        raise ExtractionError(f"{collection} response has no 'data' array")

    records = [r for r in data if isinstance(r, dict)]
    if len(records) != len(data):
        logger.debug("Dropped %d non-object entries from %s", len(data) - len(records), collection)
    return records


def fetch_collection(
    session: requests.Session,
    config: SourceConfig,
    collection: str,
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> list[RawRecord]:
    """Read all records of a collection, retrying per ``policy``.

    Raises:
        ConfigError: If the item store base URL is not configured.
        ExtractionError: If every attempt failed.

    """
    return fetch_with_retry(
        lambda: _read_collection_once(session, config, collection),
        policy,
        label=collection,
        sleep=sleep,
    )


@dataclass(frozen=True)
class SourceResult:
    """Outcome of reading one collection.

    ``records`` is always usable: a degraded source simply has none.
    Downstream code reads ``records`` and does not need to care whether an
    empty list means "no data" or "fetch failed"; ``status`` and ``error``
    exist for diagnostics.
    """

    collection: str
    records: tuple[RawRecord, ...] = ()
    status: str = "ok"
    error: str | None = None

    @classmethod
    def success(cls, collection: str, records: list[RawRecord]) -> SourceResult:
        return cls(collection=collection, records=tuple(records))

    @classmethod
    def degraded(cls, collection: str, error: str) -> SourceResult:
        return cls(collection=collection, status="degraded", error=error)

    @property
    def ok(self) -> bool:
        return self.status == "ok"


def fetch_source(
    session: requests.Session,
    config: SourceConfig,
    collection: str,
    critical: bool,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> SourceResult:
    """Read one collection under the critical or optional policy.

    Raises:
        CriticalSourceError: If a critical source exhausted its attempts.

    """
    policy = RetryPolicy.for_source(config, critical)
    try:
        records = fetch_collection(session, config, collection, policy, sleep=sleep)
    except ExtractionError as e:
        if critical:
            logger.error("Critical source %s failed: %s", collection, e)
            raise CriticalSourceError(collection, policy.max_retries, str(e)) from e
        logger.warning("Optional source %s unavailable, continuing without it: %s", collection, e)
        return SourceResult.degraded(collection, str(e))

    logger.info("Fetched %d record(s) from %s", len(records), collection)
    return SourceResult.success(collection, records)


def fetch_sources(
    config: SourceConfig,
    session: requests.Session | None = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, SourceResult]:
    """Fetch all six collections concurrently.

    Every source is resolved (data, degraded or failed) before this returns,
    so a critical failure never cancels sibling reads midway.

    Args:
        config: SourceConfig for the item store.
        session: Shared session to use. When None, each source gets its own
            session from make_session.
        sleep: Blocking delay function, injectable for tests.

    Returns:
        Mapping of collection name to SourceResult, in ALL_SOURCES order.

    Raises:
        CriticalSourceError: If ``sales_invoice`` or ``sales_return`` failed.
            When both failed, the first in ALL_SOURCES order is raised.

    """

    def run(collection: str) -> SourceResult:
        own = session if session is not None else make_session(config)
        try:
            return fetch_source(
                own, config, collection, collection in CRITICAL_SOURCES, sleep=sleep
            )
        finally:
            if session is None:
                own.close()

    started = time.monotonic()
    with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
        futures = {name: executor.submit(run, name) for name in ALL_SOURCES}

    results: dict[str, SourceResult] = {}
    failures: list[CriticalSourceError] = []
    for name, future in futures.items():
        try:
            results[name] = future.result()
        except CriticalSourceError as e:
            failures.append(e)

    if failures:
        raise failures[0]

    degraded = [name for name, r in results.items() if not r.ok]
    logger.info(
        "Fetched %d source(s) in %.2fs (%d degraded%s)",
        len(results),
        time.monotonic() - started,
        len(degraded),
        f": {', '.join(degraded)}" if degraded else "",
    )
    return results
