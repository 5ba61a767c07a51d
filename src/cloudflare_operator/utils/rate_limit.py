"""Rate limiting utilities for API calls."""

from __future__ import annotations

import os
import threading
import time
from functools import wraps
from typing import Any, Callable, TypeVar

from kubernetes.client.exceptions import ApiException

from .. import metrics
from ..config import get_config

_F = TypeVar("_F", bound=Callable[..., Any])

# Rate limit configuration
_K8S_RATE_LIMIT_PER_SECOND = float(os.getenv("K8S_RATE_LIMIT_PER_SECOND", "10.0"))


class _Throttle:
    """Minimum-interval throttle shared by every caller of one API."""

    def __init__(self, per_second: float) -> None:
        self.min_interval = 1.0 / per_second if per_second > 0 else 0.0
        self._last_call = 0.0
        self._lock = threading.Lock()

    def wait(self) -> None:
        with self._lock:
            elapsed = time.monotonic() - self._last_call
            if elapsed < self.min_interval:
                time.sleep(self.min_interval - elapsed)
            self._last_call = time.monotonic()


_k8s_throttle = _Throttle(_K8S_RATE_LIMIT_PER_SECOND)
# Built from CloudflareConfig on first use
_cloudflare_throttle: _Throttle | None = None
_cloudflare_throttle_lock = threading.Lock()


def get_cloudflare_throttle() -> _Throttle:
    """Return the process-wide Cloudflare throttle."""
    global _cloudflare_throttle
    with _cloudflare_throttle_lock:
        if _cloudflare_throttle is None:
            _cloudflare_throttle = _Throttle(get_config().cloudflare.rate_limit_per_second)
        return _cloudflare_throttle


def rate_limit_k8s(func: _F) -> _F:
    """Decorator to rate limit Kubernetes API calls."""
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        _k8s_throttle.wait()
        return func(*args, **kwargs)

    return wrapper  # type: ignore


def rate_limit_cloudflare(func: _F) -> _F:
    """Decorator to rate limit Cloudflare API calls.

    Cloudflare allows 1200 requests per five minutes per user; the default
    keeps the operator well below that.
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        get_cloudflare_throttle().wait()
        return func(*args, **kwargs)

    return wrapper  # type: ignore


def handle_rate_limit_error(e: Exception, attempt: int, max_retries: int = 3) -> bool:
    """Check if a Kubernetes API exception is a rate limit error and back off.

    Args:
        e: Exception raised by the Kubernetes client
        attempt: Zero-based attempt number of the failed call
        max_retries: Maximum number of retries

    Returns:
        True if the caller should retry, False otherwise
    """
    if not isinstance(e, ApiException):
        return False
    # Kubernetes API rate limit errors typically return 429 or 503
    if e.status == 429 or (e.status == 503 and "rate limit" in str(e).lower()):
        metrics.rate_limit_hits_total.labels(api_type="k8s").inc()
        if attempt < max_retries:
            # Exponential backoff: 1s, 2s, 4s
            time.sleep(2 ** attempt)
            return True
    return False
