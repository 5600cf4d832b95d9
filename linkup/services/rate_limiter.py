"""
Linkup Backend - Rate Limiter
===============================

What:  In-memory request admission per (route class, client identifier).
How:   Two interchangeable algorithms behind one `admit()` contract, and a
       registry that maps route classes to (limit, window) policies.
Who:   Called by the API pipeline before authentication and validation.
When:  Once per rate-limited request; a lifespan task calls `sweep()`.

Algorithms:
    FixedWindowRateLimiter (default)
        First request opens a window: count=1, reset_at=now+window.
        Later requests increment the count. Once now > reset_at the window
        starts over. A request is allowed while count <= limit (after the
        increment), so rejected requests still count.

    SlidingWindowRateLimiter
        Keeps the timestamps of admitted requests. Timestamps at or before
        now-window are dropped; with `limit` timestamps left the request is
        rejected and NOT recorded.

All times are epoch milliseconds. Counters are mutated without awaiting,
which is atomic on a single event loop. Multi-process deployments need a
shared store behind the same interface.
"""

import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional

from linkup.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class RateLimitPolicy:
    limit: int
    window_ms: int


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_at_ms: int
    limit: int
    window_ms: int
    # Limiter clock reading when the decision was made
    decided_at_ms: int

    @property
    def retry_after_seconds(self) -> int:
        """Whole seconds until the window frees up, at least 1."""
        return max(1, -(-(self.reset_at_ms - self.decided_at_ms) // 1000))


# ── Fixed Window ──────────────────────────────────────────────────────────

@dataclass
class _WindowEntry:
    count: int
    reset_at_ms: int


class FixedWindowRateLimiter:
    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or now_ms
        self._entries: Dict[str, _WindowEntry] = {}

    def admit(self, identifier: str, limit: int, window_ms: int) -> RateLimitDecision:
        now = self._clock()
        entry = self._entries.get(identifier)

        if entry is None or now > entry.reset_at_ms:
            entry = _WindowEntry(count=1, reset_at_ms=now + window_ms)
            self._entries[identifier] = entry
        else:
            entry.count += 1

        return RateLimitDecision(
            allowed=entry.count <= limit,
            remaining=max(0, limit - entry.count),
            reset_at_ms=entry.reset_at_ms,
            limit=limit,
            window_ms=window_ms,
            decided_at_ms=now,
        )

    def sweep(self) -> int:
        """Remove entries whose window has elapsed; returns how many."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now > entry.reset_at_ms]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def reset(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


# ── Sliding Window ────────────────────────────────────────────────────────

class SlidingWindowRateLimiter:
    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or now_ms
        self._requests: Dict[str, Deque[int]] = {}
        # Longest window seen per identifier, used by sweep()
        self._windows: Dict[str, int] = {}

    def admit(self, identifier: str, limit: int, window_ms: int) -> RateLimitDecision:
        now = self._clock()
        window_start = now - window_ms
        timestamps = self._requests.setdefault(identifier, deque())
        self._windows[identifier] = window_ms

        while timestamps and timestamps[0] <= window_start:
            timestamps.popleft()

        if len(timestamps) >= limit:
            return RateLimitDecision(
                allowed=False,
                remaining=0,
                reset_at_ms=timestamps[0] + window_ms,
                limit=limit,
                window_ms=window_ms,
                decided_at_ms=now,
            )

        timestamps.append(now)
        return RateLimitDecision(
            allowed=True,
            remaining=max(0, limit - len(timestamps)),
            reset_at_ms=timestamps[0] + window_ms,
            limit=limit,
            window_ms=window_ms,
            decided_at_ms=now,
        )

    def sweep(self) -> int:
        now = self._clock()
        idle = [
            key
            for key, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] <= now - self._windows.get(key, 0)
        ]
        for key in idle:
            del self._requests[key]
            self._windows.pop(key, None)
        return len(idle)

    def reset(self) -> None:
        self._requests.clear()
        self._windows.clear()

    def __len__(self) -> int:
        return len(self._requests)


# ── Registry ──────────────────────────────────────────────────────────────

ROUTE_CLASSES = ("auth", "posts", "comments", "likes", "general")


class RateLimitRegistry:
    """
    Route-class policies plus one shared limiter.

    Entries are keyed "{class}:{identifier}" so, for example, a client's
    login attempts never consume its comment budget.
    """

    def __init__(
        self,
        policies: Dict[str, RateLimitPolicy],
        algorithm: str = "fixed",
        clock: Optional[Clock] = None,
    ):
        self.policies = dict(policies)
        self.algorithm = algorithm
        if algorithm == "sliding":
            self.limiter = SlidingWindowRateLimiter(clock)
        else:
            self.limiter = FixedWindowRateLimiter(clock)

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None, clock: Optional[Clock] = None) -> "RateLimitRegistry":
        config = config or default_settings
        policies = {
            name: RateLimitPolicy(
                limit=getattr(config, f"rate_limit_{name}_requests"),
                window_ms=getattr(config, f"rate_limit_{name}_window_ms"),
            )
            for name in ROUTE_CLASSES
        }
        return cls(policies, algorithm=config.rate_limit_algorithm, clock=clock)

    def policy(self, route_class: str) -> RateLimitPolicy:
        try:
            return self.policies[route_class]
        except KeyError:
            raise KeyError(f"Unknown rate limit class '{route_class}'") from None

    def admit(self, route_class: str, identifier: str) -> RateLimitDecision:
        policy = self.policy(route_class)
        decision = self.limiter.admit(f"{route_class}:{identifier}", policy.limit, policy.window_ms)
        if not decision.allowed:
            logger.warning(
                "Rate limit exceeded: class=%s client=%s limit=%d window=%dms",
                route_class,
                identifier,
                policy.limit,
                policy.window_ms,
            )
        return decision

    def sweep(self) -> int:
        removed = self.limiter.sweep()
        if removed:
            logger.debug("Swept %d expired rate limit entries", removed)
        return removed

    def reset(self) -> None:
        self.limiter.reset()
