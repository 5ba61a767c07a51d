"""Hostname to zone resolution over CloudflareDomain objects.

A resolver works on an immutable snapshot of the CloudflareDomain objects
taken when it is built. It performs no I/O, holds no locks and can be called
any number of times. Build a new one for every reconcile so each resolution
sees current objects.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from .. import metrics
from ..constants import PLURAL_DOMAIN
from ..errors import AmbiguousDefault, AmbiguousZoneMatch, ZoneNotFound
from ..handlers.shared import list_custom_objects
from ..tracing import trace_span


def normalize_hostname(hostname: str) -> str:
    return hostname.strip().rstrip(".").lower()


def matches_domain(hostname: str, domain: str) -> bool:
    """Check whether ``domain`` covers ``hostname`` on a label boundary."""
    hostname = normalize_hostname(hostname)
    domain = normalize_hostname(domain)
    if not domain:
        return False
    return hostname == domain or hostname.endswith("." + domain)


@dataclass(frozen=True)
class ZoneBinding:
    """A CloudflareDomain reduced to what resolution needs."""

    name: str
    domain: str
    zone_id: str | None = None
    is_default: bool = False
    generation: int = 0

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> ZoneBinding:
        spec = obj.get("spec") or {}
        status = obj.get("status") or {}
        meta = obj.get("metadata") or {}
        return cls(
            name=meta.get("name", ""),
            domain=normalize_hostname(spec.get("domain", "")),
            # A manual zoneId is usable before the CloudflareDomain reconciled
            zone_id=spec.get("zoneId") or status.get("zoneId") or None,
            is_default=bool(spec.get("isDefault", False)),
            generation=meta.get("generation", 0),
        )


@dataclass(frozen=True)
class ZoneResolution:
    """Result of a successful resolution."""

    zone_id: str
    domain: str
    binding: str
    via_default: bool = False


class DomainResolver:
    """Resolves hostnames to zone ids by longest suffix match."""

    def __init__(self, bindings: Iterable[ZoneBinding]) -> None:
        self._bindings = tuple(b for b in bindings if b.domain)

    @classmethod
    def from_objects(cls, objects: Iterable[dict[str, Any]]) -> DomainResolver:
        return cls(ZoneBinding.from_object(obj) for obj in objects)

    @classmethod
    def load(cls, api: Any) -> DomainResolver:
        """Build a resolver from a fresh list of CloudflareDomain objects."""
        return cls.from_objects(list_custom_objects(api, PLURAL_DOMAIN))

    @property
    def bindings(self) -> tuple[ZoneBinding, ...]:
        return self._bindings

    @property
    def defaults(self) -> tuple[ZoneBinding, ...]:
        return tuple(b for b in self._bindings if b.is_default)

    def resolve(self, hostname: str) -> ZoneResolution:
        """Resolve a hostname to a zone.

        Raises:
            ZoneNotFound: No binding covers the hostname and there is no
                default, or the selected binding has no zone id yet
            AmbiguousDefault: The default is needed and several exist
            AmbiguousZoneMatch: Several non-default bindings claim the most
                specific domain
        """
        try:
            with trace_span("resolve.zone", attributes={"hostname": normalize_hostname(hostname)}):
                resolution = self._resolve(normalize_hostname(hostname))
        except ZoneNotFound:
            metrics.zone_resolution_total.labels(result="not_found").inc()
            raise
        except (AmbiguousDefault, AmbiguousZoneMatch):
            metrics.zone_resolution_total.labels(result="ambiguous").inc()
            raise
        metrics.zone_resolution_total.labels(result="default" if resolution.via_default else "matched").inc()
        return resolution

    def _resolve(self, hostname: str) -> ZoneResolution:
        candidates = [b for b in self._bindings if matches_domain(hostname, b.domain)]
        if candidates:
            longest = max(len(b.domain) for b in candidates)
            best = [b for b in candidates if len(b.domain) == longest]
            if len(best) > 1:
                best_defaults = [b for b in best if b.is_default]
                if len(best_defaults) != 1:
                    names = ", ".join(sorted(b.name for b in best))
                    raise AmbiguousZoneMatch(
                        f"CloudflareDomains {names} all claim {best[0].domain}; cannot choose a zone for {hostname}"
                    )
                best = best_defaults
            return self._to_resolution(best[0], hostname, via_default=False)

        defaults = self.defaults
        if len(defaults) > 1:
            names = ", ".join(sorted(b.name for b in defaults))
            raise AmbiguousDefault(
                f"multiple CloudflareDomains are marked isDefault ({names}); cannot resolve {hostname}"
            )
        if defaults:
            return self._to_resolution(defaults[0], hostname, via_default=True)
        raise ZoneNotFound(f"no CloudflareDomain matches {hostname} and no default is configured")

    @staticmethod
    def _to_resolution(binding: ZoneBinding, hostname: str, via_default: bool) -> ZoneResolution:
        if not binding.zone_id:
            raise ZoneNotFound(
                f"CloudflareDomain {binding.name} covers {hostname} but has not resolved its zone yet"
            )
        return ZoneResolution(
            zone_id=binding.zone_id,
            domain=binding.domain,
            binding=binding.name,
            via_default=via_default,
        )
