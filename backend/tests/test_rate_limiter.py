import time

import pytest

from blogauth.core.exceptions import RateLimitExceededError
from blogauth.services.rate_limiter import InMemoryRateLimiter, RateLimit

PER_MINUTE = RateLimit("test:min", 2, 60)
PER_HOUR = RateLimit("test:hour", 3, 3600)


def test_enforce_rejects_once_window_is_full():
    limiter = InMemoryRateLimiter()
    limiter.enforce("1.2.3.4", [PER_MINUTE])
    limiter.enforce("1.2.3.4", [PER_MINUTE])

    with pytest.raises(RateLimitExceededError) as exc:
        limiter.enforce("1.2.3.4", [PER_MINUTE])
    assert exc.value.details["policy"] == "test:min"
    assert 1 <= exc.value.details["retry_after"] <= 60

    # Other keys are unaffected
    limiter.enforce("5.6.7.8", [PER_MINUTE])


def test_rejected_hit_is_not_recorded_against_other_policies():
    limiter = InMemoryRateLimiter()
    limiter.enforce("k", [PER_MINUTE, PER_HOUR])
    limiter.enforce("k", [PER_MINUTE, PER_HOUR])
    with pytest.raises(RateLimitExceededError):
        limiter.enforce("k", [PER_MINUTE, PER_HOUR])

    assert limiter.retry_after("k", PER_HOUR) is None


def test_window_slides(monkeypatch):
    limiter = InMemoryRateLimiter()
    limiter.enforce("k", [PER_MINUTE])
    limiter.enforce("k", [PER_MINUTE])
    assert limiter.retry_after("k", PER_MINUTE) is not None

    real_time = time.time
    monkeypatch.setattr(time, "time", lambda: real_time() + 61)
    assert limiter.retry_after("k", PER_MINUTE) is None
    limiter.enforce("k", [PER_MINUTE])


def test_reset_clears_all_windows():
    limiter = InMemoryRateLimiter()
    limiter.enforce("k", [PER_MINUTE])
    limiter.enforce("k", [PER_MINUTE])
    limiter.reset()
    limiter.enforce("k", [PER_MINUTE])
