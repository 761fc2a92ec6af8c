from __future__ import annotations

import hashlib
import json
import logging
import random
import re
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

import requests

"""HTTP client for the AI proxy (workload classification, right-sizing,
migration insights, chat).

The proxy is optional. ``classify``, ``rightsize`` and ``insights`` return
``None`` after a final failure so callers fall back to rule-based results;
``chat`` raises ``ProxyError``.

Transient failures (connection errors, timeouts, HTTP 5xx and 429) are
retried with exponential backoff and jitter. Successful responses are kept in
a ``TTLCache`` owned by the client instance.
"""

__all__ = [
    "BATCH_SIZE",
    "ProxyError",
    "RetryPolicy",
    "TTLCache",
    "ProxyClient",
    "is_retryable",
    "parse_json_response",
]

logger = logging.getLogger(__name__)

BATCH_SIZE = 10

T = TypeVar("T")


class ProxyError(Exception):
    def __init__(self, message: str, status: int | None = None, transient: bool = False) -> None:
        super().__init__(message)
        self.status = status
        self.transient = transient


def is_retryable(error: BaseException) -> bool:
    if isinstance(error, (requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(error, ProxyError):
        return error.transient
    return False


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_factor: float = 2.0

    def delay(self, attempt: int, rand: Callable[[], float] = random.random) -> float:
        """Seconds to wait before retry ``attempt`` (0-based), with +/-25% jitter."""
        capped = min(self.initial_delay * self.backoff_factor**attempt, self.max_delay)
        return capped * (0.75 + rand() * 0.5)


class TTLCache:
    def __init__(self, ttl_seconds: float, now: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._now = now
        self._entries: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._now() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        now = self._now()
        for k in [k for k, (at, _) in self._entries.items() if now - at > self.ttl_seconds]:
            del self._entries[k]
        self._entries[key] = (now, value)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def parse_json_response(text: str) -> Any:
    """Extract JSON from model output.

    Tried in order: the whole text, a fenced ``json`` block, the outermost
    ``[...]``, the outermost ``{...}``.

    Raises:
        ValueError: nothing parseable was found
    """
    candidates = [text]
    for pattern in (_FENCE_RE, _ARRAY_RE, _OBJECT_RE):
        m = pattern.search(text)
        if m is not None:
            candidates.append(m.group(1 if pattern is _FENCE_RE else 0).strip())
    for candidate in candidates:
        try:
            return json.loads(candidate)
        except ValueError:
            continue
    raise ValueError("could not parse JSON from response")


def _batches(items: Sequence[T], size: int = BATCH_SIZE) -> list[Sequence[T]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


def _cache_key(kind: str, payload: dict[str, Any]) -> str:
    # VM order within a batch does not change the answer
    vms = sorted(payload.get("vms", ()), key=lambda v: json.dumps(v, sort_keys=True, default=str))
    canonical = json.dumps(dict(payload, vms=vms), sort_keys=True, default=str)
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"{kind}:{digest[:32]}"


class ProxyClient:
    """Client for one proxy deployment.

    ``session``, ``sleep`` and ``rand`` are injectable for tests.
    """

    def __init__(
        self,
        base_url: str,
        *,
        session: requests.Session | None = None,
        timeout: float = 60.0,
        retry: RetryPolicy | None = None,
        cache: TTLCache | None = None,
        sleep: Callable[[float], None] = time.sleep,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.retry = retry or RetryPolicy()
        self.cache = cache or TTLCache(24 * 60 * 60)
        self._sleep = sleep
        self._rand = rand

    # -- transport ------------------------------------------------------------

    def _post_once(self, path: str, payload: dict[str, Any]) -> Any:
        resp = self.session.post(f"{self.base_url}{path}", json=payload, timeout=self.timeout)
        if resp.status_code >= 400:
            transient = resp.status_code >= 500 or resp.status_code == 429
            raise ProxyError(
                f"{path} returned HTTP {resp.status_code}",
                status=resp.status_code,
                transient=transient,
            )
        try:
            return parse_json_response(resp.text)
        except ValueError as e:
            raise ProxyError(f"{path}: {e}", status=resp.status_code) from e

    def _post(self, path: str, payload: dict[str, Any]) -> Any:
        attempt = 0
        while True:
            try:
                return self._post_once(path, payload)
            except (requests.RequestException, ProxyError) as e:
                if attempt >= self.retry.max_retries or not is_retryable(e):
                    if isinstance(e, ProxyError):
                        raise
                    raise ProxyError(f"{path}: {e}", transient=is_retryable(e)) from e
                delay = self.retry.delay(attempt, self._rand)
                attempt += 1
                logger.warning("%s failed (%s); retry %d in %.1fs", path, e, attempt, delay)
                self._sleep(delay)

    def _cached_post(self, key: str, path: str, payload: dict[str, Any]) -> Any:
        hit = self.cache.get(key)
        if hit is not None:
            logger.debug("cache hit: %s", key)
            return hit
        value = self._post(path, payload)
        self.cache.set(key, value)
        return value

    # -- endpoints ------------------------------------------------------------

    def is_available(self) -> bool:
        try:
            resp = self.session.get(f"{self.base_url}/health", timeout=min(self.timeout, 5.0))
        except requests.RequestException as e:
            logger.debug("proxy health check failed: %s", e)
            return False
        return resp.status_code == 200

    def _batched(
        self, kind: str, path: str, result_key: str, vms: Sequence[dict[str, Any]], extra: dict[str, Any]
    ) -> list[dict[str, Any]] | None:
        results: list[dict[str, Any]] = []
        try:
            for batch in _batches(vms):
                payload = {"vms": list(batch), **extra}
                body = self._cached_post(_cache_key(kind, payload), path, payload)
                if isinstance(body, dict):
                    body = body.get(result_key, [])
                if not isinstance(body, list):
                    raise ProxyError(f"{path} returned an unexpected body")
                results.extend(body)
        except ProxyError as e:
            logger.error("%s failed: %s", kind, e)
            return None
        return results

    def classify(self, vms: Sequence[dict[str, Any]]) -> list[dict[str, Any]] | None:
        """Workload classification for ``vms`` (dicts with at least ``vmName``)."""
        if not vms:
            return []
        return self._batched("classify", "/api/classify", "classifications", vms, {})

    def rightsize(
        self, vms: Sequence[dict[str, Any]], profiles: Sequence[dict[str, Any]]
    ) -> list[dict[str, Any]] | None:
        if not vms:
            return []
        return self._batched(
            "rightsizing",
            "/api/rightsizing",
            "recommendations",
            vms,
            {"availableProfiles": list(profiles)},
        )

    def insights(self, data: dict[str, Any]) -> dict[str, Any] | None:
        key = "insights:{}:{}:{}:{}".format(
            data.get("totalVMs"),
            data.get("totalVCPUs"),
            data.get("totalMemoryGiB"),
            data.get("migrationTarget", "both"),
        )
        try:
            body = self._cached_post(key, "/api/insights", {"data": data})
        except ProxyError as e:
            logger.error("insights failed: %s", e)
            return None
        return body.get("insights") if isinstance(body, dict) else None

    def chat(
        self,
        message: str,
        history: Sequence[dict[str, str]] = (),
        context: dict[str, Any] | None = None,
    ) -> str:
        """Raises ProxyError on failure. Not cached."""
        body = self._post(
            "/api/chat",
            {
                "message": message,
                # 直近 20 件のみ送る
                "conversationHistory": list(history)[-20:],
                "context": context or {},
            },
        )
        if not isinstance(body, dict) or "response" not in body:
            raise ProxyError("/api/chat returned an unexpected body")
        return str(body["response"])
