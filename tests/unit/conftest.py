"""Shared fixtures for unit tests."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from cloudflare_operator import config as operator_config
from cloudflare_operator.config import OperatorConfig, RequeueConfig
from cloudflare_operator.resolvers.credentials import Credential
from cloudflare_operator.utils import rate_limit
from cloudflare_operator.utils.cache import invalidate_cache


@pytest.fixture(autouse=True)
def isolate_process_state(monkeypatch):
    """Reset module level caches and disable event posting, throttling and live generation reads."""
    invalidate_cache()
    operator_config.reset_config()
    monkeypatch.setattr("cloudflare_operator.utils.events.kopf.event", MagicMock())
    monkeypatch.setattr("cloudflare_operator.handlers.engine.get_k8s_client", MagicMock())
    monkeypatch.setattr("cloudflare_operator.handlers.engine.get_live_generation", MagicMock(return_value=None))
    monkeypatch.setattr(rate_limit, "_cloudflare_throttle", rate_limit._Throttle(0))
    monkeypatch.setattr(rate_limit, "_k8s_throttle", rate_limit._Throttle(0))
    yield
    invalidate_cache()
    operator_config.reset_config()


@pytest.fixture
def operator_cfg() -> OperatorConfig:
    """Configuration without jitter so requeue delays are deterministic."""
    return OperatorConfig(requeue=RequeueConfig(jitter_factor=0.0))


@pytest.fixture
def credential() -> Credential:
    return Credential(name="main", account_id="acc-123", api_token="token-abc")


@pytest.fixture
def credential_resolver(credential):
    resolver = MagicMock()
    resolver.resolve.return_value = credential
    return resolver


def make_resource(
    name: str,
    spec: dict[str, Any] | None = None,
    status: dict[str, Any] | None = None,
    namespace: str | None = "default",
    generation: int = 1,
    deleting: bool = False,
) -> tuple[dict[str, Any], dict[str, Any], dict[str, Any], dict[str, Any]]:
    """Build the (body, spec, meta, status) tuple kopf passes to handlers."""
    meta: dict[str, Any] = {"name": name, "uid": f"uid-{name}", "generation": generation}
    if namespace is not None:
        meta["namespace"] = namespace
    if deleting:
        meta["deletionTimestamp"] = "2026-01-01T00:00:00Z"
        meta["finalizers"] = ["networking.cloudflare-operator.io/finalizer"]
    spec = spec or {}
    status = status or {}
    body = {"metadata": meta, "spec": spec, "status": status}
    return body, spec, meta, status


@pytest.fixture
def resource():
    """Factory for handler arguments, see ``make_resource``."""
    return make_resource
