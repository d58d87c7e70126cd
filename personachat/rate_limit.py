"""
Fixed-window rate limiter.

One counter per client key, reset at fixed window boundaries. The table is
process-local: several server instances each keep their own counters. Swap
in another RateLimiter implementation (same check/sweep surface) to share
counts across instances.

Clients that send neither X-Forwarded-For nor X-Real-IP all share the
"unknown" bucket.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Mapping

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


@dataclass
class RateLimitEntry:
    count: int
    reset_at: float  # epoch seconds


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a single check()."""
    allowed: bool
    limit: int
    remaining: int
    reset_at: float  # epoch seconds

    @property
    def reset_ms(self) -> int:
        return int(self.reset_at * 1000)

    @property
    def reset_iso(self) -> str:
        return datetime.fromtimestamp(self.reset_at, tz=timezone.utc).isoformat()

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_ms),
        }


def client_key_from_headers(headers: Mapping[str, str]) -> str:
    """First X-Forwarded-For hop, else X-Real-IP, else the shared sentinel."""
    forwarded = headers.get("x-forwarded-for") or ""
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    real = (headers.get("x-real-ip") or "").strip()
    return real or UNKNOWN_CLIENT


class RateLimiter:
    """
    In-memory fixed-window limiter.

    check() never raises. A key with no entry, or whose window has passed,
    starts a fresh window with count=1. A full window is denied without
    incrementing.
    """

    def __init__(
        self,
        max_requests: int = 20,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, cfg: dict) -> "RateLimiter":
        rl_cfg = cfg.get("rate_limit", {})
        return cls(
            max_requests=int(rl_cfg.get("max_requests", 20)),
            window_seconds=float(rl_cfg.get("window_seconds", 60)),
        )

    def check(self, client_key: str) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(client_key)

            if entry is None or now > entry.reset_at:
                entry = RateLimitEntry(count=1, reset_at=now + self.window_seconds)
                self._entries[client_key] = entry
                return RateLimitResult(
                    allowed=True,
                    limit=self.max_requests,
                    remaining=self.max_requests - 1,
                    reset_at=entry.reset_at,
                )

            if entry.count >= self.max_requests:
                return RateLimitResult(
                    allowed=False,
                    limit=self.max_requests,
                    remaining=0,
                    reset_at=entry.reset_at,
                )

            entry.count += 1
            return RateLimitResult(
                allowed=True,
                limit=self.max_requests,
                remaining=self.max_requests - entry.count,
                reset_at=entry.reset_at,
            )

    def sweep(self) -> int:
        """Drop entries whose window has passed. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if now > e.reset_at]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Rate limiter swept %d expired entries", len(expired))
        return len(expired)

    async def sweep_forever(self):
        """Periodic sweep at the window cadence. Run as a background task."""
        while True:
            await asyncio.sleep(self.window_seconds)
            self.sweep()

    def __len__(self) -> int:
        return len(self._entries)
