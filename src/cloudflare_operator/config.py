"""Configuration for the Cloudflare Operator.

Loads configuration from environment variables. Every group exposes a
``from_env`` classmethod so tests can build instances directly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass(frozen=True)
class RequeueConfig:
    """Requeue intervals and exponential backoff configuration."""

    short: float = 10.0
    medium: float = 30.0
    long: float = 60.0
    very_long: float = 300.0
    max_backoff: float = 300.0
    max_backoff_exponent: int = 6
    jitter_factor: float = 0.1  # ±10% jitter
    domain_resync: float = 3600.0
    registration_resync: float = 3600.0

    @classmethod
    def from_env(cls) -> RequeueConfig:
        """Load from environment variables."""
        return cls(
            short=float(os.getenv("REQUEUE_SHORT_SECONDS", "10")),
            medium=float(os.getenv("REQUEUE_MEDIUM_SECONDS", "30")),
            long=float(os.getenv("REQUEUE_LONG_SECONDS", "60")),
            very_long=float(os.getenv("REQUEUE_VERY_LONG_SECONDS", "300")),
            max_backoff=float(os.getenv("REQUEUE_MAX_BACKOFF_SECONDS", "300")),
            max_backoff_exponent=int(os.getenv("REQUEUE_MAX_BACKOFF_EXPONENT", "6")),
            jitter_factor=float(os.getenv("REQUEUE_JITTER_FACTOR", "0.1")),
            domain_resync=float(os.getenv("DOMAIN_RESYNC_SECONDS", "3600")),
            registration_resync=float(os.getenv("REGISTRATION_RESYNC_SECONDS", "3600")),
        )


@dataclass(frozen=True)
class DeletionConfig:
    """Deletion branch configuration."""

    max_attempts: int = 5

    @classmethod
    def from_env(cls) -> DeletionConfig:
        """Load from environment variables."""
        return cls(max_attempts=int(os.getenv("DELETION_MAX_ATTEMPTS", "5")))


@dataclass(frozen=True)
class CloudflareConfig:
    """Cloudflare API access configuration."""

    api_base_url: str = "https://api.cloudflare.com/client/v4"
    request_timeout: float = 30.0
    rate_limit_per_second: float = 4.0
    credentials_namespace: str = "cloudflare-operator-system"

    @classmethod
    def from_env(cls) -> CloudflareConfig:
        """Load from environment variables."""
        return cls(
            api_base_url=os.getenv("CLOUDFLARE_API_BASE_URL", "https://api.cloudflare.com/client/v4").rstrip("/"),
            request_timeout=float(os.getenv("CLOUDFLARE_REQUEST_TIMEOUT_SECONDS", "30")),
            rate_limit_per_second=float(os.getenv("CLOUDFLARE_RATE_LIMIT_PER_SECOND", "4.0")),
            credentials_namespace=os.getenv("OPERATOR_NAMESPACE", "cloudflare-operator-system"),
        )


@dataclass(frozen=True)
class OperatorConfig:
    """Top-level operator configuration."""

    metrics_port: int = 8080
    drift_check_interval: float = 300.0
    max_workers: int = 4
    request_timeout: float = 30.0
    requeue: RequeueConfig = field(default_factory=RequeueConfig)
    deletion: DeletionConfig = field(default_factory=DeletionConfig)
    cloudflare: CloudflareConfig = field(default_factory=CloudflareConfig)

    @classmethod
    def from_env(cls) -> OperatorConfig:
        """Load from environment variables."""
        return cls(
            metrics_port=int(os.getenv("METRICS_PORT", "8080")),
            drift_check_interval=float(os.getenv("DRIFT_CHECK_INTERVAL_SECONDS", "300")),
            max_workers=int(os.getenv("MAX_WORKERS", "4")),
            request_timeout=float(os.getenv("K8S_REQUEST_TIMEOUT_SECONDS", "30")),
            requeue=RequeueConfig.from_env(),
            deletion=DeletionConfig.from_env(),
            cloudflare=CloudflareConfig.from_env(),
        )


_config: OperatorConfig | None = None


def get_config() -> OperatorConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = OperatorConfig.from_env()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next call reloads it."""
    global _config
    _config = None
