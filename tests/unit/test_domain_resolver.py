"""Tests for hostname to zone resolution."""

from __future__ import annotations

from unittest.mock import Mock

import pytest

from cloudflare_operator.errors import AmbiguousDefault, AmbiguousZoneMatch, ZoneNotFound
from cloudflare_operator.resolvers.domain import (
    DomainResolver,
    ZoneBinding,
    matches_domain,
    normalize_hostname,
)


def _domain(name: str, domain: str, zone_id: str | None = None, is_default: bool = False) -> dict:
    return {
        "metadata": {"name": name, "generation": 1},
        "spec": {"domain": domain, "isDefault": is_default},
        "status": {"zoneId": zone_id} if zone_id else {},
    }


@pytest.fixture
def resolver() -> DomainResolver:
    return DomainResolver.from_objects(
        [
            _domain("example", "example.com", "zone-example", is_default=True),
            _domain("staging", "staging.example.com", "zone-staging"),
        ]
    )


class TestSuffixMatching:
    """Test cases for label boundary matching."""

    def test_exact_and_subdomain(self):
        """Test exact and subdomain matches."""
        assert matches_domain("example.com", "example.com")
        assert matches_domain("a.b.example.com", "example.com")

    def test_label_boundary(self):
        """Test that a plain string suffix is not a match."""
        assert not matches_domain("badexample.com", "example.com")

    def test_normalization(self):
        """Test case and trailing dot normalization."""
        assert normalize_hostname(" API.Example.COM. ") == "api.example.com"
        assert matches_domain("API.EXAMPLE.COM.", "example.com")

    def test_empty_domain_never_matches(self):
        """Test that an empty domain matches nothing."""
        assert not matches_domain("example.com", "")


class TestResolve:
    """Test cases for DomainResolver.resolve."""

    def test_most_specific_binding_wins(self, resolver):
        """Test longest suffix match."""
        resolution = resolver.resolve("api.staging.example.com")

        assert resolution.zone_id == "zone-staging"
        assert resolution.binding == "staging"
        assert resolution.via_default is False

    def test_parent_domain(self, resolver):
        """Test that the apex binding covers other subdomains."""
        resolution = resolver.resolve("api.example.com")

        assert resolution.zone_id == "zone-example"
        assert resolution.via_default is False

    def test_default_fallback(self, resolver):
        """Test falling back to the default binding."""
        resolution = resolver.resolve("unrelated.org")

        assert resolution.zone_id == "zone-example"
        assert resolution.via_default is True

    def test_resolution_is_repeatable(self, resolver):
        """Test that resolving has no side effects."""
        assert resolver.resolve("api.example.com") == resolver.resolve("api.example.com")

    def test_no_match_no_default(self):
        """Test that nothing matching and no default is ZoneNotFound."""
        resolver = DomainResolver.from_objects([_domain("staging", "staging.example.com", "zone-staging")])

        with pytest.raises(ZoneNotFound):
            resolver.resolve("unrelated.org")

    def test_multiple_defaults_only_fail_when_needed(self):
        """Test that several defaults error only for the fallback path."""
        resolver = DomainResolver.from_objects(
            [
                _domain("a", "a.com", "zone-a", is_default=True),
                _domain("b", "b.com", "zone-b", is_default=True),
            ]
        )

        assert resolver.resolve("www.a.com").zone_id == "zone-a"
        with pytest.raises(AmbiguousDefault, match="a, b"):
            resolver.resolve("unrelated.org")

    def test_duplicate_domain_is_ambiguous(self):
        """Test that two bindings claiming one domain cannot be told apart."""
        resolver = DomainResolver.from_objects(
            [_domain("one", "example.com", "zone-1"), _domain("two", "example.com", "zone-2")]
        )

        with pytest.raises(AmbiguousZoneMatch):
            resolver.resolve("api.example.com")

    def test_duplicate_domain_prefers_default(self):
        """Test that a single default breaks a tie between equal matches."""
        resolver = DomainResolver.from_objects(
            [_domain("one", "example.com", "zone-1"), _domain("two", "example.com", "zone-2", is_default=True)]
        )

        assert resolver.resolve("api.example.com").zone_id == "zone-2"

    def test_binding_without_zone(self):
        """Test that a binding that has not resolved its zone yet is not usable."""
        resolver = DomainResolver.from_objects([_domain("example", "example.com")])

        with pytest.raises(ZoneNotFound, match="has not resolved its zone"):
            resolver.resolve("api.example.com")

    def test_manual_zone_id_on_binding(self):
        """Test that a binding's spec.zoneId is usable before it reconciled."""
        obj = _domain("example", "example.com")
        obj["spec"]["zoneId"] = "zone-manual"

        assert ZoneBinding.from_object(obj).zone_id == "zone-manual"

    def test_load_lists_domains(self):
        """Test building a resolver from the Kubernetes API."""
        api = Mock()
        api.list_cluster_custom_object.return_value = {"items": [_domain("example", "example.com", "z")]}

        resolver = DomainResolver.load(api)

        assert [b.name for b in resolver.bindings] == ["example"]
        assert api.list_cluster_custom_object.call_args[1]["plural"] == "cloudflaredomains"
