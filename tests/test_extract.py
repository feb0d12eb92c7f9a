"""Unit tests for the raw extraction layer: retry policies and concurrent source reads."""

import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
import requests

from sales_bi.config import SourceConfig
from sales_bi.exceptions import ConfigError, CriticalSourceError, ExtractionError
from sales_bi.raw.extract import (
    ALL_SOURCES,
    FetchAttemptState,
    RetryPolicy,
    SourceResult,
    fetch_collection,
    fetch_source,
    fetch_sources,
    fetch_with_retry,
    make_session,
)
from tests.test_utils import FakeResponse, FakeSession, SleepRecorder, timeouts

BASE = "http://items.test"


@pytest.fixture
def config() -> SourceConfig:
    return SourceConfig(base_url=BASE)


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


class TricklingHandler(BaseHTTPRequestHandler):
    """Answers any GET with a valid envelope, one byte every 0.25s."""

    body = b'{"data": []}'

    def do_GET(self) -> None:
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(self.body)))
        self.end_headers()
        try:
            for i in range(len(self.body)):
                self.wfile.write(self.body[i : i + 1])
                self.wfile.flush()
                time.sleep(0.25)
        except (BrokenPipeError, ConnectionResetError):
            pass

    def log_message(self, format: str, *args) -> None:
        pass


@pytest.fixture
def trickling_server():
    server = ThreadingHTTPServer(("127.0.0.1", 0), TricklingHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()


class BarrierSession(FakeSession):
    """Serves a first read only once all six first reads are in flight together."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.barrier = threading.Barrier(len(ALL_SOURCES))
        self._first_seen: set[str] = set()

    def get(self, url, params=None, timeout=None):
        collection = url.rsplit("/", 1)[-1]
        with self._lock:
            first = collection not in self._first_seen
            self._first_seen.add(collection)
        if first:
            self.barrier.wait(timeout=5)
        return super().get(url, params, timeout)


class SiblingTrackingSession(FakeSession):
    """Sets ``siblings_done`` once every source except ``sales_invoice`` was served."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.siblings = set(ALL_SOURCES) - {"sales_invoice"}
        self.served: set[str] = set()
        self.siblings_done = threading.Event()

    def get(self, url, params=None, timeout=None):
        resp = super().get(url, params, timeout)
        collection = url.rsplit("/", 1)[-1]
        with self._lock:
            self.served.add(collection)
            if self.siblings <= self.served:
                self.siblings_done.set()
        return resp


class TestRetryPolicy:
    def test_critical_and_optional_defaults(self, config: SourceConfig) -> None:
        assert RetryPolicy.for_source(config, critical=True) == RetryPolicy(3, 2.0, critical=True)
        assert RetryPolicy.for_source(config, critical=False) == RetryPolicy(2, 0.5, critical=False)

    def test_attempt_state_exhaustion(self) -> None:
        state = FetchAttemptState(max_retries=2, delay=0.5)
        assert not state.exhausted
        state.attempt = 2
        state.record_failure("boom")
        assert state.exhausted
        assert state.last_error == "boom"
        assert state.errors == ["boom"]


class TestFetchWithRetry:
    def test_returns_first_success(self, sleep: SleepRecorder) -> None:
        outcomes = [ExtractionError("503"), "ok"]

        def read() -> str:
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        assert fetch_with_retry(read, RetryPolicy(3, 2.0), label="x", sleep=sleep) == "ok"
        assert sleep.delays == [2.0]

    def test_exhaustion_raises_with_last_error(self, sleep: SleepRecorder) -> None:
        calls = []

        def read() -> None:
            calls.append(1)
            raise ExtractionError(f"failure {len(calls)}")

        with pytest.raises(ExtractionError, match="failure 3") as excinfo:
            fetch_with_retry(read, RetryPolicy(3, 2.0), label="x", sleep=sleep)

        assert len(calls) == 3
        # No sleep after the final attempt
        assert sleep.delays == [2.0, 2.0]
        assert isinstance(excinfo.value.__cause__, ExtractionError)

    def test_non_extraction_errors_are_not_retried(self, sleep: SleepRecorder) -> None:
        calls = []

        def read() -> None:
            calls.append(1)
            raise KeyError("bug")

        with pytest.raises(KeyError):
            fetch_with_retry(read, RetryPolicy(3, 2.0), label="x", sleep=sleep)
        assert len(calls) == 1
        assert sleep.delays == []


class TestFetchCollection:
    def test_requests_unbounded_limit(self, config: SourceConfig, sleep: SleepRecorder) -> None:
        session = FakeSession()
        records = fetch_collection(session, config, "customer", RetryPolicy(2, 0.5), sleep=sleep)

        assert [r["customer_code"] for r in records] == ["C001", "C002"]
        url, params, _ = session.calls[0]
        assert url == f"{BASE}/items/customer"
        assert params == {"limit": -1}

    def test_retries_after_503(self, config: SourceConfig, sleep: SleepRecorder) -> None:
        session = FakeSession(failures={"sales_invoice": [503, 503]})
        records = fetch_collection(
            session, config, "sales_invoice", RetryPolicy(3, 2.0, critical=True), sleep=sleep
        )

        assert len(records) == 2
        assert session.calls_for("sales_invoice") == 3
        assert sleep.delays == [2.0, 2.0]

    def test_other_status_is_a_failed_attempt(
        self, config: SourceConfig, sleep: SleepRecorder
    ) -> None:
        session = FakeSession(always_fail={"division": 404})
        with pytest.raises(ExtractionError, match="HTTP 404"):
            fetch_collection(session, config, "division", RetryPolicy(2, 0.5), sleep=sleep)
        assert session.calls_for("division") == 2

    def test_transport_error_and_bad_body(self, config: SourceConfig, sleep: SleepRecorder) -> None:
        session = FakeSession(
            failures={"branches": [requests.ConnectionError("refused"), "bad-json"]}
        )
        with pytest.raises(ExtractionError, match="non-JSON"):
            fetch_collection(session, config, "branches", RetryPolicy(2, 0.5), sleep=sleep)

    def test_empty_collection(self, config: SourceConfig, sleep: SleepRecorder) -> None:
        session = FakeSession(collections={})
        assert fetch_collection(session, config, "salesman", RetryPolicy(1, 0), sleep=sleep) == []

    def test_missing_data_envelope(self, config: SourceConfig, sleep: SleepRecorder) -> None:
        session = FakeSession(failures={"salesman": ["no-data"]})
        with pytest.raises(ExtractionError, match="no 'data' array"):
            fetch_collection(session, config, "salesman", RetryPolicy(1, 0), sleep=sleep)

    def test_skips_non_object_entries(self, config: SourceConfig, sleep: SleepRecorder) -> None:
        session = FakeSession(collections={"customer": [{"customer_code": "C1"}, "junk", None]})
        records = fetch_collection(session, config, "customer", RetryPolicy(1, 0), sleep=sleep)
        assert records == [{"customer_code": "C1"}]

    def test_requires_base_url(self, sleep: SleepRecorder) -> None:
        with pytest.raises(ConfigError, match="BI_ITEMS_BASE"):
            fetch_collection(
                FakeSession(), SourceConfig(), "customer", RetryPolicy(2, 0.5), sleep=sleep
            )

    def test_trickling_response_times_out_as_a_whole(
        self, trickling_server: str, sleep: SleepRecorder
    ) -> None:
        # Every byte arrives well within the socket timeout; the body as a whole does not
        config = SourceConfig(base_url=trickling_server, timeout=1.0)
        session = make_session(config)
        started = time.monotonic()
        try:
            with pytest.raises(ExtractionError, match="timed out after 1s"):
                fetch_collection(session, config, "customer", RetryPolicy(1, 0), sleep=sleep)
        finally:
            session.close()

        assert time.monotonic() - started <= 1.5


class TestFetchSource:
    def test_critical_timeout_on_every_attempt_raises(
        self, config: SourceConfig, sleep: SleepRecorder
    ) -> None:
        session = FakeSession(failures={"sales_invoice": timeouts(3)})

        with pytest.raises(CriticalSourceError) as excinfo:
            fetch_source(session, config, "sales_invoice", critical=True, sleep=sleep)

        assert excinfo.value.collection == "sales_invoice"
        assert excinfo.value.attempts == 3
        assert "sales_invoice" in str(excinfo.value)
        assert session.calls_for("sales_invoice") == 3
        assert sleep.delays == [2.0, 2.0]

    def test_optional_failure_degrades_to_empty(
        self, config: SourceConfig, sleep: SleepRecorder
    ) -> None:
        session = FakeSession(always_fail={"customer": requests.ConnectionError("refused")})

        result = fetch_source(session, config, "customer", critical=False, sleep=sleep)

        assert result.collection == "customer"
        assert result.records == ()
        assert result.status == "degraded"
        assert not result.ok
        assert "refused" in (result.error or "")
        assert session.calls_for("customer") == 2
        assert sleep.delays == [0.5]


class TestFetchSources:
    def test_fetches_all_six(self, config: SourceConfig, sleep: SleepRecorder) -> None:
        session = FakeSession()
        results = fetch_sources(config, session, sleep=sleep)

        assert list(results) == list(ALL_SOURCES)
        assert all(r.ok for r in results.values())
        assert len(results["sales_invoice"].records) == 2
        assert not session.closed

    def test_optional_failures_do_not_abort(
        self, config: SourceConfig, sleep: SleepRecorder
    ) -> None:
        session = FakeSession(always_fail={"customer": 503, "branches": 500})
        results = fetch_sources(config, session, sleep=sleep)

        assert results["customer"].status == "degraded"
        assert results["branches"].status == "degraded"
        assert results["sales_invoice"].ok
        assert results["salesman"].ok

    def test_critical_failure_raises_after_siblings_resolve(
        self, config: SourceConfig, sleep: SleepRecorder
    ) -> None:
        session = FakeSession(always_fail={"sales_return": 503})

        with pytest.raises(CriticalSourceError) as excinfo:
            fetch_sources(config, session, sleep=sleep)

        assert excinfo.value.collection == "sales_return"
        # Sibling fetches ran to completion
        for name in ("sales_invoice", "salesman", "division", "customer", "branches"):
            assert session.calls_for(name) == 1

    def test_all_six_reads_are_in_flight_together(
        self, config: SourceConfig, sleep: SleepRecorder
    ) -> None:
        session = BarrierSession()

        results = fetch_sources(config, session, sleep=sleep)

        assert all(r.ok for r in results.values())
        assert session.barrier.broken is False

    def test_backoff_does_not_hold_up_siblings(self, config: SourceConfig) -> None:
        session = SiblingTrackingSession(failures={"sales_invoice": [503]})

        def sleep(seconds: float) -> None:
            assert session.siblings_done.wait(timeout=5), "siblings waited on the backoff"

        results = fetch_sources(config, session, sleep=sleep)

        assert results["sales_invoice"].ok
        assert session.calls_for("sales_invoice") == 2
        assert all(r.ok for r in results.values())


def test_make_session_sets_headers_and_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: dict = {}

    def fake_request(self, method, url, **kwargs):
        seen.update(kwargs)
        return FakeResponse(payload={"data": []})

    monkeypatch.setattr(requests.Session, "request", fake_request)
    config = SourceConfig(base_url=BASE, timeout=12.0, access_token="secret")
    s = make_session(config)
    try:
        assert s.headers["Accept"] == "application/json"
        assert s.headers["Authorization"] == "Bearer secret"
        s.get(f"{BASE}/items/customer")
        assert seen["timeout"] == 12.0
    finally:
        s.close()


def test_source_result_constructors() -> None:
    ok = SourceResult.success("division", [{"id": 1}])
    assert ok.ok and ok.records == ({"id": 1},) and ok.error is None

    degraded = SourceResult.degraded("division", "HTTP 500")
    assert not degraded.ok
    assert degraded.records == ()
    assert degraded.error == "HTTP 500"
