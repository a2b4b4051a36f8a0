"""In-memory throttling for credential and refresh endpoints."""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Optional, Sequence

from blogauth.config import settings
from blogauth.core.exceptions import RateLimitExceededError


@dataclass(frozen=True)
class RateLimit:
    """At most ``limit`` hits per ``window_seconds`` for one key."""

    name: str
    limit: int
    window_seconds: int
    message: str = "Too many attempts. Please try again later."


def login_limits() -> Sequence[RateLimit]:
    return (
        RateLimit("login:min", settings.LOGIN_RATE_LIMIT_PER_MINUTE, 60,
                  "Too many login attempts. Please wait a minute."),
        RateLimit("login:hour", settings.LOGIN_RATE_LIMIT_PER_HOUR, 3600),
    )


def refresh_limits() -> Sequence[RateLimit]:
    return (
        RateLimit("refresh:min", settings.RATE_LIMIT_PER_MINUTE, 60,
                  "Too many refresh attempts. Slow down."),
        RateLimit("refresh:hour", settings.RATE_LIMIT_PER_HOUR, 3600),
    )


class InMemoryRateLimiter:
    """Sliding-window limiter for single-node deployments.

    Each ``(policy, key)`` pair keeps the timestamps of its accepted hits.
    Rejected hits are not recorded, so a client that backs off recovers
    as soon as the window slides past its oldest accepted hit.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hits: Dict[str, Deque[float]] = {}

    def _window(self, bucket_key: str, window_seconds: int, now: float) -> Deque[float]:
        hits = self._hits.setdefault(bucket_key, deque())
        cutoff = now - window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()
        return hits

    def retry_after(self, key: str, policy: RateLimit) -> Optional[int]:
        """Seconds until ``key`` may hit ``policy`` again; None if it may now."""
        now = time.time()
        with self._lock:
            hits = self._window(f"{policy.name}:{key}", policy.window_seconds, now)
            if len(hits) < policy.limit:
                return None
            return max(1, math.ceil(hits[0] + policy.window_seconds - now))

    def enforce(self, key: str, policies: Sequence[RateLimit]) -> None:
        """
        Record one hit for ``key`` against every policy, or none at all.

        Raises:
            RateLimitExceededError: If any policy is exhausted; details carry
                the policy name and a retry hint in seconds
        """
        now = time.time()
        with self._lock:
            windows = []
            for policy in policies:
                hits = self._window(f"{policy.name}:{key}", policy.window_seconds, now)
                if len(hits) >= policy.limit:
                    wait = max(1, math.ceil(hits[0] + policy.window_seconds - now))
                    raise RateLimitExceededError(
                        policy.message,
                        details={"policy": policy.name, "retry_after": wait},
                    )
                windows.append(hits)
            for hits in windows:
                hits.append(now)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


rate_limiter = InMemoryRateLimiter()
