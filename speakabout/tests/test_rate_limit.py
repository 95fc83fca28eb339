"""
Unit tests for the fixed-window rate limiter and client identification.
"""

import pytest
from starlette.requests import Request

from speakabout.core.rate_limit import (
    LimitsRateLimitStore,
    MemoryRateLimitStore,
    RateLimiter,
    build_rate_limit_store,
    get_client_identifier,
)

WINDOW_MS = 60_000


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_request(headers=None, client=("203.0.113.9", 50000)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


class TestRateLimiter:
    def test_allows_up_to_limit_then_denies(self):
        clock = FakeClock(start=1_700_000_000.0)
        limiter = RateLimiter(clock=clock)

        results = [limiter.check("login:1.2.3.4", 3, WINDOW_MS) for _ in range(4)]

        assert [r.success for r in results] == [True, True, True, False]
        assert [r.remaining for r in results] == [2, 1, 0, 0]
        assert all(r.limit == 3 for r in results)

    def test_reset_time_is_end_of_window(self):
        clock = FakeClock(start=1_700_000_010.5)
        limiter = RateLimiter(clock=clock)

        result = limiter.check("k", 5, WINDOW_MS)

        now_ms = int(clock.now * 1000)
        assert result.reset_time == (now_ms // WINDOW_MS + 1) * WINDOW_MS
        assert result.reset_time > now_ms
        assert result.retry_after(now_ms) == (result.reset_time - now_ms + 999) // 1000

    def test_new_window_starts_fresh(self):
        clock = FakeClock(start=1_700_000_000.0)
        limiter = RateLimiter(clock=clock)
        for _ in range(3):
            limiter.check("k", 2, WINDOW_MS)
        assert limiter.check("k", 2, WINDOW_MS).success is False

        clock.advance(WINDOW_MS / 1000)

        result = limiter.check("k", 2, WINDOW_MS)
        assert result.success is True
        assert result.remaining == 1

    def test_identifiers_are_independent(self):
        limiter = RateLimiter(clock=FakeClock())
        assert limiter.check("a", 1, WINDOW_MS).success is True
        assert limiter.check("a", 1, WINDOW_MS).success is False
        assert limiter.check("b", 1, WINDOW_MS).success is True

    def test_expired_buckets_are_swept(self):
        clock = FakeClock(start=1_700_000_000.0)
        store = MemoryRateLimitStore()
        limiter = RateLimiter(store=store, clock=clock, sweep_interval=60.0)

        for i in range(5):
            limiter.check(f"client-{i}", 10, WINDOW_MS)
        assert len(store) == 5

        clock.advance(120)
        limiter.check("late", 10, WINDOW_MS)

        assert len(store) == 1

    def test_sweep_runs_at_most_once_per_interval(self):
        clock = FakeClock(start=1_700_000_000.0)
        store = MemoryRateLimitStore()
        limiter = RateLimiter(store=store, clock=clock, sweep_interval=3600.0)

        limiter.check("a", 10, 1000)
        clock.advance(5)
        limiter.check("b", 10, 1000)

        # "a" expired but the sweep interval has not elapsed
        assert len(store) == 2

    def test_reset_clears_counters(self):
        limiter = RateLimiter(clock=FakeClock())
        limiter.check("k", 1, WINDOW_MS)
        limiter.reset()
        assert limiter.check("k", 1, WINDOW_MS).success is True


class TestStoreSelection:
    def test_memory_uri_builds_memory_store(self):
        assert isinstance(build_rate_limit_store("memory://"), MemoryRateLimitStore)

    def test_default_uses_environment(self, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_STORAGE_URI", "memory://")
        assert isinstance(build_rate_limit_store(), MemoryRateLimitStore)

    def test_limits_backed_store_counts(self):
        clock = FakeClock(start=1_700_000_000.0)
        store = LimitsRateLimitStore("memory://", clock=clock)
        limiter = RateLimiter(store=store, clock=clock)

        assert limiter.check("k", 1, WINDOW_MS).success is True
        assert limiter.check("k", 1, WINDOW_MS).success is False


class TestClientIdentifier:
    def test_first_forwarded_hop_wins(self):
        request = make_request({"X-Forwarded-For": "198.51.100.7, 10.0.0.1", "X-Real-IP": "10.0.0.2"})
        assert get_client_identifier(request) == "198.51.100.7"

    def test_real_ip_when_not_forwarded(self):
        assert get_client_identifier(make_request({"X-Real-IP": "198.51.100.8"})) == "198.51.100.8"

    def test_falls_back_to_peer_address(self):
        assert get_client_identifier(make_request()) == "203.0.113.9"

    @pytest.mark.parametrize("headers", [{}, {"X-Forwarded-For": " , "}])
    def test_unknown_without_any_source(self, headers):
        assert get_client_identifier(make_request(headers, client=None)) == "unknown"
