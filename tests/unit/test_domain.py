"""Tests for the CloudflareDomain handler."""

from __future__ import annotations

from unittest.mock import MagicMock, Mock

import kopf
import pytest

from cloudflare_operator.handlers.domain import CloudflareDomainStrategy
from cloudflare_operator.handlers.engine import Reconciler
from cloudflare_operator.services.cloudflare.models import CloudflareZone
from cloudflare_operator.utils.conditions import get_condition


def _zone(status: str = "active") -> CloudflareZone:
    return CloudflareZone(
        id="zone-example",
        name="example.com",
        status=status,
        name_servers=["ada.ns.cloudflare.com", "bob.ns.cloudflare.com"],
        account={"id": "acc-123"},
    )


@pytest.fixture
def cf() -> MagicMock:
    api = MagicMock()
    api.account_id = "acc-123"
    api.find_zone.return_value = _zone()
    return api


@pytest.fixture
def list_domains() -> Mock:
    return Mock(return_value=[])


@pytest.fixture
def reconciler(cf, list_domains, credential_resolver, operator_cfg) -> Reconciler:
    strategy = CloudflareDomainStrategy(config=operator_cfg, list_domains=list_domains)
    return Reconciler(strategy, credential_resolver=credential_resolver, client_factory=lambda c: cf, config=operator_cfg)


def _run(reconciler, resource, spec=None, status=None):
    body, spec, meta, status = resource("example", spec=spec or {"domain": "example.com"}, status=status, namespace=None)
    patch_obj = kopf.Patch()
    return reconciler.reconcile(body, spec, meta, status, patch_obj), patch_obj


class TestCloudflareDomain:
    """Test cases for zone binding verification."""

    def test_active_zone_is_ready(self, reconciler, resource, cf):
        """Test binding to an active zone found by name."""
        outcome, patch_obj = _run(reconciler, resource)

        assert outcome.state == "Ready"
        assert patch_obj.status["zoneId"] == "zone-example"
        assert patch_obj.status["accountId"] == "acc-123"
        assert patch_obj.status["nameServers"] == ["ada.ns.cloudflare.com", "bob.ns.cloudflare.com"]
        assert get_condition(patch_obj.status["conditions"], "ZoneResolved")["status"] == "True"
        cf.find_zone.assert_called_once_with("example.com")

    def test_pending_zone_is_verifying(self, reconciler, resource, cf):
        """Test that a zone awaiting name server changes is re-checked."""
        cf.find_zone.return_value = _zone(status="pending")

        outcome, patch_obj = _run(reconciler, resource)

        assert outcome.state == "Verifying"
        assert outcome.requeue_after == 30.0
        assert patch_obj.status["zoneStatus"] == "pending"

    def test_explicit_zone_id(self, reconciler, resource, cf):
        """Test that spec.zoneId is looked up directly."""
        cf.get_zone.return_value = _zone()

        outcome, _ = _run(reconciler, resource, spec={"domain": "example.com", "zoneId": "zone-example"})

        assert outcome.state == "Ready"
        cf.get_zone.assert_called_once_with("zone-example")
        cf.find_zone.assert_not_called()

    def test_unknown_zone(self, reconciler, resource, cf):
        """Test that a domain without a zone in the account is a configuration error."""
        cf.find_zone.return_value = None

        outcome, patch_obj = _run(reconciler, resource)

        assert outcome.state == "Error"
        assert outcome.requeue_after == 30.0
        assert get_condition(patch_obj.status["conditions"], "ZoneResolved")["status"] == "False"

    def test_default_conflict_condition(self, reconciler, resource, list_domains):
        """Test that several isDefault bindings are surfaced without failing."""
        list_domains.return_value = [
            {"metadata": {"name": "example"}, "spec": {"isDefault": True}},
            {"metadata": {"name": "other"}, "spec": {"isDefault": True}},
        ]

        outcome, patch_obj = _run(reconciler, resource, spec={"domain": "example.com", "isDefault": True})

        assert outcome.state == "Ready"
        assert "other" in outcome.message
        condition = get_condition(patch_obj.status["conditions"], "DefaultConflict")
        assert condition["status"] == "True"
        assert condition["reason"] == "MultipleDefaults"

    def test_conflict_clears(self, reconciler, resource, list_domains):
        """Test that the conflict condition goes away once resolved."""
        status = {"conditions": [{"type": "DefaultConflict", "status": "True"}]}

        _, patch_obj = _run(reconciler, resource, spec={"domain": "example.com", "isDefault": True}, status=status)

        assert get_condition(patch_obj.status["conditions"], "DefaultConflict") is None

    def test_deletion_leaves_zone_alone(self, reconciler, resource, cf, credential_resolver):
        """Test that deleting a binding never touches the zone."""
        body, spec, meta, status = resource(
            "example", spec={"domain": "example.com"}, status={"zoneId": "zone-example"}, deleting=True
        )
        patch_obj = kopf.Patch()

        reconciler.finalize(body, spec, meta, status, patch_obj)

        assert cf.mock_calls == []
        credential_resolver.resolve.assert_not_called()
        assert patch_obj.metadata["finalizers"] is None
