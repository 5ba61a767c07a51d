"""Requeue interval and backoff calculation."""

from __future__ import annotations

import random

from ..config import RequeueConfig
from ..errors import ErrorCategory


def backoff_delay(
    retry: int,
    base: float,
    maximum: float,
    max_exponent: int = 6,
    jitter_factor: float = 0.0,
) -> float:
    """Exponential backoff capped at ``maximum`` with ±jitter.

    Args:
        retry: Zero-based retry count
        base: Delay for the first retry
        maximum: Upper bound for the delay before jitter
        max_exponent: Largest power of two applied to ``base``
        jitter_factor: Jitter factor ±X (0.1 = ±10%)

    Returns:
        Delay in seconds
    """
    delay = min(base * (2 ** min(max(retry, 0), max_exponent)), maximum)
    if jitter_factor:
        delay *= 1 + random.uniform(-jitter_factor, jitter_factor)
    return max(delay, 0.0)


def requeue_for(category: ErrorCategory, retry: int, config: RequeueConfig) -> float | None:
    """Choose how long to wait before reconciling again after a failure.

    Returns None when only the regular resync should pick the resource up.
    """
    if category is ErrorCategory.TRANSIENT:
        return backoff_delay(
            retry,
            config.short,
            config.max_backoff,
            config.max_backoff_exponent,
            config.jitter_factor,
        )
    if category is ErrorCategory.CONFIGURATION:
        return config.medium
    return None
