"""Utility functions for the Cloudflare Operator."""

from .backoff import backoff_delay, requeue_for
from .cache import (
    get_cached_object,
    invalidate_cache,
    make_cache_key,
    set_cached_object,
)
from .conditions import (
    get_condition,
    is_condition_true,
    remove_condition,
    set_ready_condition,
    update_condition,
)
from .context import get_context_dict, get_correlation_id, with_correlation_id
from .events import emit_event
from .rate_limit import handle_rate_limit_error, rate_limit_cloudflare, rate_limit_k8s

__all__ = [
    "backoff_delay",
    "requeue_for",
    "get_cached_object",
    "set_cached_object",
    "invalidate_cache",
    "make_cache_key",
    "update_condition",
    "remove_condition",
    "get_condition",
    "is_condition_true",
    "set_ready_condition",
    "get_context_dict",
    "get_correlation_id",
    "with_correlation_id",
    "emit_event",
    "rate_limit_k8s",
    "rate_limit_cloudflare",
    "handle_rate_limit_error",
]
