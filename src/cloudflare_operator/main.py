"""Main entry point for the Cloudflare Operator."""

from __future__ import annotations

from typing import Any

import kopf

from . import health
from . import logging as structured_logging
from .config import get_config
from .tracing import initialize_tracing

# Import handlers to register them; every module registers itself via @kopf decorators
from .handlers import (  # noqa: F401
    bucket,
    bucket_domain,
    bucket_notification,
    domain,
    domain_registration,
    identity_provider,
)


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    config = get_config()

    # Set up structured JSON logging
    structured_logging.setup_structured_logging()
    initialize_tracing()

    # Use AnnotationsProgressStorage to avoid conflicts with status updates
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = 0
    settings.networking.request_timeout = config.request_timeout
    settings.execution.max_workers = config.max_workers

    # Metrics and health endpoints
    health.start_health_server(config.metrics_port)
    health.mark_ready()


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    """Report not ready while the operator stops."""
    health.mark_not_ready()


def run() -> None:
    """Console entry point; equivalent to ``kopf run --all-namespaces -m cloudflare_operator.main``."""
    kopf.run(clusterwide=True)
