from __future__ import annotations

import json
from types import SimpleNamespace

import pytest
import requests

from rvtools_ingest.services.proxy_client import (
    ProxyClient,
    ProxyError,
    RetryPolicy,
    TTLCache,
    is_retryable,
    parse_json_response,
)

"""Unit tests for the AI proxy client (no network)."""


def response(status: int = 200, body=None, text: str | None = None):
    return SimpleNamespace(status_code=status, text=text if text is not None else json.dumps(body))


class FakeSession:
    """Replays queued responses / exceptions and records every call."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls: list[tuple[str, dict]] = []

    def _next(self):
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def post(self, url, json=None, timeout=None):
        self.calls.append((url, json))
        return self._next()

    def get(self, url, timeout=None):
        self.calls.append((url, None))
        return self._next()


def client(session, **kw) -> tuple[ProxyClient, list[float]]:
    sleeps: list[float] = []
    c = ProxyClient("http://proxy.local/", session=session, sleep=sleeps.append, rand=lambda: 0.5, **kw)
    return c, sleeps


def vms(n: int) -> list[dict]:
    return [{"vmName": f"vm{i:02d}"} for i in range(n)]


class TestRetry:
    def test_delay_backoff_and_cap(self):
        policy = RetryPolicy(initial_delay=1.0, max_delay=5.0, backoff_factor=2.0)
        assert [policy.delay(a, lambda: 0.5) for a in range(4)] == [1.0, 2.0, 4.0, 5.0]
        assert policy.delay(0, lambda: 0.0) == 0.75
        assert policy.delay(0, lambda: 1.0) == 1.25

    def test_retries_transient_then_succeeds(self):
        session = FakeSession(
            response(503, text="busy"),
            requests.ConnectionError("reset"),
            response(200, {"classifications": [{"vmName": "vm00", "workload": "Web"}]}),
        )
        c, sleeps = client(session)
        result = c.classify(vms(1))
        assert result == [{"vmName": "vm00", "workload": "Web"}]
        assert sleeps == [1.0, 2.0]
        assert len(session.calls) == 3

    def test_client_error_is_not_retried(self):
        session = FakeSession(response(400, text="bad request"))
        c, sleeps = client(session)
        assert c.classify(vms(1)) is None
        assert sleeps == []

    def test_gives_up_after_max_retries(self):
        session = FakeSession(*[response(500, text="x") for _ in range(3)])
        c, sleeps = client(session, retry=RetryPolicy(max_retries=2))
        assert c.classify(vms(1)) is None
        assert len(sleeps) == 2
        assert session.outcomes == []

    def test_is_retryable(self):
        assert is_retryable(requests.Timeout())
        assert is_retryable(ProxyError("x", status=429, transient=True))
        assert not is_retryable(ProxyError("x", status=404))
        assert not is_retryable(ValueError("x"))


class TestEndpoints:
    def test_classify_batches_of_ten(self):
        session = FakeSession(
            response(200, {"classifications": [{"vmName": f"vm{i:02d}"} for i in range(10)]}),
            response(200, {"classifications": [{"vmName": f"vm{i:02d}"} for i in range(10, 12)]}),
        )
        c, _ = client(session)
        result = c.classify(vms(12))
        assert len(result) == 12
        assert [len(body["vms"]) for _, body in session.calls] == [10, 2]
        assert session.calls[0][0] == "http://proxy.local/api/classify"

    def test_classify_is_cached(self):
        session = FakeSession(response(200, {"classifications": [{"vmName": "vm00"}]}))
        c, _ = client(session)
        first = c.classify(vms(1))
        second = c.classify(vms(1))
        assert first == second
        assert len(session.calls) == 1
        assert len(c.cache) == 1

    def test_rightsize_cache_depends_on_profiles(self):
        session = FakeSession(
            response(200, {"recommendations": [{"vmName": "vm00", "profile": "bx2-2x8"}]}),
            response(200, {"recommendations": [{"vmName": "vm00", "profile": "cx2-4x8"}]}),
        )
        c, _ = client(session)
        first = c.rightsize(vms(1), [{"name": "bx2-2x8"}])
        second = c.rightsize(vms(1), [{"name": "cx2-4x8"}])
        assert first[0]["profile"] == "bx2-2x8"
        assert second[0]["profile"] == "cx2-4x8"
        assert len(session.calls) == 2
        # same profiles again is served from the cache
        assert c.rightsize(vms(1), [{"name": "bx2-2x8"}]) == first
        assert len(session.calls) == 2

    def test_classify_cache_ignores_vm_order(self):
        session = FakeSession(response(200, {"classifications": []}))
        c, _ = client(session)
        c.classify(vms(3))
        c.classify(list(reversed(vms(3))))
        assert len(session.calls) == 1

    def test_empty_input_makes_no_call(self):
        session = FakeSession()
        c, _ = client(session)
        assert c.classify([]) == []
        assert c.rightsize([], []) == []
        assert session.calls == []

    def test_rightsize_sends_profiles(self):
        session = FakeSession(response(200, {"recommendations": [{"vmName": "vm00", "profile": "bx2-2x8"}]}))
        c, _ = client(session)
        result = c.rightsize(vms(1), [{"name": "bx2-2x8"}])
        assert result[0]["profile"] == "bx2-2x8"
        assert session.calls[0][1]["availableProfiles"] == [{"name": "bx2-2x8"}]

    def test_insights(self):
        session = FakeSession(response(200, {"insights": {"summary": "ok"}}))
        c, _ = client(session)
        assert c.insights({"totalVMs": 3}) == {"summary": "ok"}

    def test_insights_failure_returns_none(self):
        session = FakeSession(response(404, text="nope"))
        c, _ = client(session)
        assert c.insights({"totalVMs": 3}) is None

    def test_unexpected_body_returns_none(self):
        session = FakeSession(response(200, {"classifications": "oops"}))
        c, _ = client(session)
        assert c.classify(vms(1)) is None

    def test_chat_trims_history(self):
        session = FakeSession(response(200, {"response": "hello"}))
        c, _ = client(session)
        history = [{"role": "user", "content": str(i)} for i in range(30)]
        assert c.chat("hi", history) == "hello"
        sent = session.calls[0][1]["conversationHistory"]
        assert len(sent) == 20
        assert sent[0]["content"] == "10"

    def test_chat_raises(self):
        session = FakeSession(response(403, text="forbidden"))
        c, _ = client(session)
        with pytest.raises(ProxyError) as exc:
            c.chat("hi")
        assert exc.value.status == 403

    def test_health(self):
        c, _ = client(FakeSession(response(200, text="ok")))
        assert c.is_available()
        c, _ = client(FakeSession(requests.ConnectionError("down")))
        assert not c.is_available()


def test_ttl_cache_expiry():
    clock = [0.0]
    cache = TTLCache(10, now=lambda: clock[0])
    cache.set("k", 1)
    clock[0] = 10.0
    assert cache.get("k") == 1
    clock[0] = 10.5
    assert cache.get("k") is None
    assert len(cache) == 0


def test_ttl_cache_set_evicts_expired_entries():
    clock = [0.0]
    cache = TTLCache(10, now=lambda: clock[0])
    cache.set("old", 1)
    clock[0] = 5.0
    cache.set("recent", 2)
    clock[0] = 12.0
    cache.set("new", 3)
    assert len(cache) == 2
    assert cache.get("recent") == 2
    assert cache.get("old") is None


@pytest.mark.parametrize(
    "text,expected",
    [
        ('{"a": 1}', {"a": 1}),
        ('Here you go:\n```json\n[{"a": 1}]\n```', [{"a": 1}]),
        ('Result: [1, 2] done', [1, 2]),
        ('prefix {"b": true} suffix', {"b": True}),
    ],
)
def test_parse_json_response(text, expected):
    assert parse_json_response(text) == expected


def test_parse_json_response_rejects_garbage():
    with pytest.raises(ValueError):
        parse_json_response("no json here")
