"""Exception types and error classification for reconciliation.

Every failure a reconcile can hit falls into one of three categories:

* ``Transient``: network failures, timeouts, rate limiting and 5xx responses.
  Retried with exponential backoff and no attempt cap.
* ``Configuration``: missing credentials, unresolvable zones, references to
  objects that do not exist yet, rejected credentials. Reported as a
  condition and retried at a relaxed interval since the referenced object
  may appear later.
* ``Permanent``: the remote API rejected the request as structurally
  invalid. Reported as ``Error`` and only retried on the regular resync.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import requests


class ErrorCategory(str, Enum):
    """Taxonomy used to decide status and requeue behaviour."""

    TRANSIENT = "Transient"
    CONFIGURATION = "Configuration"
    PERMANENT = "Permanent"


class OperatorError(Exception):
    """Base class for errors raised by reconcilers."""

    category = ErrorCategory.TRANSIENT


class TransientError(OperatorError):
    """A failure expected to clear on its own."""

    category = ErrorCategory.TRANSIENT


class ConfigurationError(OperatorError):
    """The desired state references something missing or inconsistent."""

    category = ErrorCategory.CONFIGURATION


class PermanentError(OperatorError):
    """The requested operation can never succeed as specified."""

    category = ErrorCategory.PERMANENT


class CredentialNotFound(ConfigurationError):
    """Referenced (or default) CloudflareCredentials object is missing."""


class ZoneNotFound(ConfigurationError):
    """No CloudflareDomain covers a hostname and no default exists."""


class AmbiguousDefault(ConfigurationError):
    """More than one CloudflareDomain is marked as default."""


class AmbiguousZoneMatch(ConfigurationError):
    """Several CloudflareDomains claim the same domain."""


class DependencyNotReady(ConfigurationError):
    """A referenced Kubernetes object is missing or not ready yet."""


class CloudflareAPIError(Exception):
    """Error response from the Cloudflare API.

    Args:
        message: Human readable summary
        status_code: HTTP status, None for transport failures
        errors: The ``errors`` array from the response envelope
        operation: Name of the client operation that failed
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        errors: list[dict[str, Any]] | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or []
        self.operation = operation

    @property
    def codes(self) -> list[int]:
        return [err["code"] for err in self.errors if isinstance(err.get("code"), int)]

    def __str__(self) -> str:
        base = super().__str__()
        prefix = f"{self.operation}: " if self.operation else ""
        if self.status_code is not None:
            return f"{prefix}{base} (HTTP {self.status_code})"
        return f"{prefix}{base}"


_NOT_FOUND_MARKERS = (
    "not found",
    "does not exist",
    "no such",
    "could not find",
    "resource_not_found",
    "unknown_identity_provider",
)
_CONFLICT_MARKERS = ("already exists", "conflict", "duplicate")
_RATE_LIMIT_MARKERS = ("rate limit", "too many requests")
_TEMPORARY_MARKERS = ("timeout", "timed out", "connection refused", "temporary")
_AUTH_MARKERS = ("unauthorized", "authentication", "permission denied", "forbidden")


def _status(error: BaseException) -> int | None:
    return getattr(error, "status_code", None)


def _text(error: BaseException) -> str:
    return str(error).lower()


def is_not_found(error: BaseException) -> bool:
    """Check if an error means the remote object does not exist."""
    if isinstance(error, (ZoneNotFound, CredentialNotFound)):
        return False
    if _status(error) == 404:
        return True
    return any(marker in _text(error) for marker in _NOT_FOUND_MARKERS)


def is_conflict(error: BaseException) -> bool:
    """Check if an error means the remote object already exists."""
    if _status(error) == 409:
        return True
    return any(marker in _text(error) for marker in _CONFLICT_MARKERS)


def is_rate_limited(error: BaseException) -> bool:
    """Check if an error is a rate limit rejection."""
    if _status(error) == 429:
        return True
    return any(marker in _text(error) for marker in _RATE_LIMIT_MARKERS)


def is_auth_error(error: BaseException) -> bool:
    """Check if an error is an authentication or authorization failure."""
    if _status(error) in (401, 403):
        return True
    return any(marker in _text(error) for marker in _AUTH_MARKERS)


def is_transient(error: BaseException) -> bool:
    """Check if an error is expected to clear by retrying."""
    if isinstance(error, (requests.Timeout, requests.ConnectionError, TimeoutError, ConnectionError)):
        return True
    if is_rate_limited(error):
        return True
    status = _status(error)
    if status is not None and status >= 500:
        return True
    return any(marker in _text(error) for marker in _TEMPORARY_MARKERS)


def classify_error(error: BaseException) -> ErrorCategory:
    """Map any exception raised during a reconcile onto the taxonomy.

    Unknown errors are treated as transient so they keep being retried.
    """
    if isinstance(error, OperatorError):
        return error.category
    if is_transient(error):
        return ErrorCategory.TRANSIENT
    if is_auth_error(error):
        return ErrorCategory.CONFIGURATION
    # R2 answers 404 and 409 for a short while after a create
    if is_not_found(error) or is_conflict(error):
        return ErrorCategory.TRANSIENT
    status = _status(error)
    if status is not None and 400 <= status < 500:
        return ErrorCategory.PERMANENT
    return ErrorCategory.TRANSIENT
