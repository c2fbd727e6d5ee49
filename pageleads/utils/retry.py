# pageleads/utils/retry.py
#
# Exponential backoff with jitter.
#
# max_attempts counts the first call: max_attempts=3 -> 1 call + 2 retries.
# Delays are in seconds. Delay before attempt k (k >= 2):
#   base  = min(initial_delay * backoff_factor ** (k - 2), max_delay)
#   delay = base + uniform(0, 0.25 * base)

from __future__ import annotations

import random
import time
from dataclasses import dataclass, replace
from functools import wraps
from typing import Callable, Optional, TypeVar

from .logger import Log

T = TypeVar("T")

JITTER_RATIO = 0.25


def default_should_retry(error: BaseException) -> bool:
    """
    Classified Graph errors carry their own `transient` flag.
    Anything unclassified (no structured payload) is treated as retriable.
    """
    transient = getattr(error, "transient", None)
    if isinstance(transient, bool):
        return transient
    return True


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_factor: float = 2.0
    should_retry: Callable[[BaseException], bool] = default_should_retry
    on_retry: Optional[Callable[[BaseException, int], None]] = None

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.initial_delay <= 0:
            raise ValueError("initial_delay must be > 0")
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")

    def with_overrides(self, **changes) -> "RetryPolicy":
        """Copy with some fields replaced, e.g. per-endpoint rate-limit tuning."""
        return replace(self, **changes)

    @classmethod
    def from_config(cls, config, **overrides) -> "RetryPolicy":
        policy = cls(
            max_attempts=int(config.get("GRAPH_RETRY_MAX_ATTEMPTS", 3)),
            initial_delay=float(config.get("GRAPH_RETRY_INITIAL_DELAY", 1.0)),
            max_delay=float(config.get("GRAPH_RETRY_MAX_DELAY", 10.0)),
            backoff_factor=float(config.get("GRAPH_RETRY_BACKOFF_FACTOR", 2.0)),
        )
        return policy.with_overrides(**overrides) if overrides else policy


DEFAULT_RETRY_POLICY = RetryPolicy()


def compute_delay(attempt: int, policy: RetryPolicy, rng: Callable[[], float] = random.random) -> float:
    """Seconds to wait before `attempt` (2-based; attempt 1 never waits)."""
    if attempt <= 1:
        return 0.0
    base = min(policy.initial_delay * policy.backoff_factor ** (attempt - 2), policy.max_delay)
    return base + rng() * JITTER_RATIO * base


def retry_with_backoff(
    operation: Callable[[], T],
    policy: Optional[RetryPolicy] = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
    rng: Callable[[], float] = random.random,
    log_tag: str = "[retry.py][retry_with_backoff]",
) -> T:
    """
    Run `operation` until it succeeds, the policy declines a retry, or
    max_attempts is reached. The last exception is re-raised unchanged.
    """
    policy = policy or DEFAULT_RETRY_POLICY
    attempt = 0

    while True:
        attempt += 1
        try:
            return operation()
        except Exception as e:
            if attempt >= policy.max_attempts or not policy.should_retry(e):
                raise

            next_attempt = attempt + 1
            sleep_s = compute_delay(next_attempt, policy, rng)
            Log.warning(
                f"{log_tag} retry={attempt}/{policy.max_attempts - 1} "
                f"sleeping={sleep_s:.2f}s err={e!r}"
            )

            if policy.on_retry is not None:
                try:
                    policy.on_retry(e, next_attempt)
                except Exception as hook_error:
                    Log.info(f"{log_tag} on_retry hook failed: {hook_error}")

            sleep(sleep_s)


def retryable(policy: Optional[RetryPolicy] = None, **retry_kwargs):
    """Decorator form of retry_with_backoff."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            return retry_with_backoff(lambda: fn(*args, **kwargs), policy, **retry_kwargs)
        return wrapper
    return decorator


__all__ = [
    "RetryPolicy",
    "DEFAULT_RETRY_POLICY",
    "default_should_retry",
    "compute_delay",
    "retry_with_backoff",
    "retryable",
]
