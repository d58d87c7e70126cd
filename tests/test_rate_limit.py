"""
Tests for the fixed-window rate limiter.
Run with: pytest tests/test_rate_limit.py
"""

import pytest

from personachat.rate_limit import (
    UNKNOWN_CLIENT,
    RateLimiter,
    client_key_from_headers,
)


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return RateLimiter(max_requests=3, window_seconds=60, clock=clock)


# ---------------------------------------------------------------------------
# check()
# ---------------------------------------------------------------------------

def test_first_request_opens_window(limiter, clock):
    """First request creates an entry with count=1."""
    r = limiter.check("1.2.3.4")
    assert r.allowed
    assert r.limit == 3
    assert r.remaining == 2
    assert r.reset_at == clock.now + 60


def test_exactly_limit_requests_allowed(limiter):
    """limit requests pass, the next one is denied with remaining=0."""
    results = [limiter.check("k") for _ in range(3)]
    assert all(r.allowed for r in results)
    assert [r.remaining for r in results] == [2, 1, 0]

    denied = limiter.check("k")
    assert not denied.allowed
    assert denied.remaining == 0
    assert denied.reset_at == results[0].reset_at


def test_denied_requests_do_not_increment(limiter, clock):
    """Hammering a full window does not push the count past the limit."""
    for _ in range(10):
        limiter.check("k")
    assert limiter._entries["k"].count == 3


def test_keys_are_independent(limiter):
    """Each client key has its own window."""
    for _ in range(3):
        limiter.check("a")
    assert not limiter.check("a").allowed
    assert limiter.check("b").allowed


def test_window_resets_after_expiry(limiter, clock):
    """Once now > reset_at a fresh window starts with a full quota."""
    first = limiter.check("k")
    for _ in range(3):
        limiter.check("k")

    clock.now = first.reset_at + 0.001
    r = limiter.check("k")
    assert r.allowed
    assert r.remaining == 2
    assert r.reset_at == clock.now + 60


def test_window_boundary_is_inclusive(limiter, clock):
    """At exactly reset_at the old window still applies."""
    first = limiter.check("k")
    limiter.check("k")
    limiter.check("k")

    clock.now = first.reset_at
    assert not limiter.check("k").allowed


# ---------------------------------------------------------------------------
# sweep()
# ---------------------------------------------------------------------------

def test_sweep_removes_only_expired(limiter, clock):
    limiter.check("old")
    clock.now += 30
    limiter.check("new")
    clock.now += 31  # "old" expired, "new" still live

    removed = limiter.sweep()
    assert removed == 1
    assert "old" not in limiter._entries
    assert "new" in limiter._entries
    assert len(limiter) == 1


def test_swept_key_starts_fresh(limiter, clock):
    for _ in range(3):
        limiter.check("k")
    clock.now += 61
    limiter.sweep()
    assert limiter.check("k").remaining == 2


# ---------------------------------------------------------------------------
# Result helpers
# ---------------------------------------------------------------------------

def test_result_headers_and_reset_formats(limiter, clock):
    r = limiter.check("k")
    headers = r.headers()
    assert headers["X-RateLimit-Limit"] == "3"
    assert headers["X-RateLimit-Remaining"] == "2"
    assert headers["X-RateLimit-Reset"] == str(int((clock.now + 60) * 1000))
    assert r.reset_ms == int((clock.now + 60) * 1000)
    assert r.reset_iso.startswith("1970-01-01T00:17:40")


def test_from_config_defaults():
    limiter = RateLimiter.from_config({})
    assert limiter.max_requests == 20
    assert limiter.window_seconds == 60


def test_from_config_values():
    limiter = RateLimiter.from_config({"rate_limit": {"max_requests": 5, "window_seconds": 10}})
    assert limiter.max_requests == 5
    assert limiter.window_seconds == 10


# ---------------------------------------------------------------------------
# Client key derivation
# ---------------------------------------------------------------------------

def test_client_key_uses_first_forwarded_hop():
    headers = {"x-forwarded-for": "10.0.0.1, 172.16.0.1", "x-real-ip": "192.168.1.1"}
    assert client_key_from_headers(headers) == "10.0.0.1"


def test_client_key_falls_back_to_real_ip():
    assert client_key_from_headers({"x-real-ip": "192.168.1.1"}) == "192.168.1.1"


def test_client_key_empty_forwarded_falls_back():
    headers = {"x-forwarded-for": " , 10.0.0.2", "x-real-ip": "192.168.1.1"}
    assert client_key_from_headers(headers) == "192.168.1.1"


def test_client_key_unknown_sentinel():
    """Clients with neither header share one bucket."""
    assert client_key_from_headers({}) == UNKNOWN_CLIENT == "unknown"
