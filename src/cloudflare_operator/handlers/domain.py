"""Handler for CloudflareDomain CRD (zone bindings)."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

import kopf

from ..config import OperatorConfig
from ..constants import (
    API_GROUP_VERSION,
    COND_DEFAULT_CONFLICT,
    DELETION_POLICY_ORPHAN,
    KIND_DOMAIN,
    PLURAL_DOMAIN,
    REASON_PROGRESSING,
    STATE_READY,
    STATE_VERIFYING,
)
from ..errors import ConfigurationError
from ..resolvers.domain import normalize_hostname
from ..services.cloudflare.models import CloudflareZone
from ..utils.conditions import remove_condition, set_zone_resolved_condition, update_condition
from .engine import BaseStrategy, Mutation, Outcome, ReconcileContext, Reconciler
from .shared import get_k8s_client, list_custom_objects


def _list_domains() -> list[dict[str, Any]]:
    return list_custom_objects(get_k8s_client(), PLURAL_DOMAIN)


class CloudflareDomainStrategy(BaseStrategy):
    """Verifies a zone binding against the account's zones.

    Zones are never created, changed or deleted; the binding only records
    which zone a domain maps to.
    """

    kind = KIND_DOMAIN
    plural = PLURAL_DOMAIN
    progressing_state = STATE_VERIFYING

    def __init__(
        self,
        config: OperatorConfig | None = None,
        list_domains: Callable[[], list[dict[str, Any]]] | None = None,
    ) -> None:
        super().__init__(config)
        self.list_domains = list_domains or _list_domains

    def describe(self, ctx: ReconcileContext) -> str:
        return f"zone binding for {ctx.spec.get('domain', ctx.name)}"

    def prepare(self, ctx: ReconcileContext) -> None:
        if not ctx.spec.get("domain"):
            raise ConfigurationError(f"CloudflareDomain {ctx.name} has no spec.domain")

        conflicts: list[str] = []
        if ctx.spec.get("isDefault"):
            conflicts = sorted(
                obj.get("metadata", {}).get("name", "")
                for obj in self.list_domains()
                if (obj.get("spec") or {}).get("isDefault") and obj.get("metadata", {}).get("name") != ctx.name
            )
        if conflicts:
            ctx.set_condition(
                update_condition,
                COND_DEFAULT_CONFLICT,
                "True",
                "MultipleDefaults",
                f"CloudflareDomains {', '.join(conflicts)} are also marked isDefault",
            )
        else:
            ctx.conditions = remove_condition(ctx.conditions, COND_DEFAULT_CONFLICT)
        ctx.extras["default_conflicts"] = conflicts

    def fetch(self, ctx: ReconcileContext) -> CloudflareZone:
        domain = normalize_hostname(ctx.spec["domain"])
        zone_id = ctx.spec.get("zoneId")
        if zone_id:
            zone = ctx.api.get_zone(zone_id)
            missing = f"zone {zone_id} configured for {domain} does not exist"
        else:
            zone = ctx.api.find_zone(domain)
            missing = f"no zone named {domain} in account {ctx.api.account_id}"
        if zone is None:
            ctx.set_condition(set_zone_resolved_condition, False, missing)
            raise ConfigurationError(missing)
        return zone

    def diff(self, ctx: ReconcileContext, remote: CloudflareZone) -> list[Mutation]:
        return []

    def observe(self, ctx: ReconcileContext, remote: CloudflareZone) -> Outcome:
        ctx.set_condition(set_zone_resolved_condition, True, f"Bound to zone {remote.name} ({remote.id})")
        fields = {
            "zoneId": remote.id,
            "zoneName": remote.name,
            "accountId": remote.account_id or ctx.api.account_id,
            "nameServers": list(remote.name_servers),
            "zoneStatus": remote.status,
            "lastVerifiedTime": datetime.now(timezone.utc).isoformat(),
        }
        if remote.status != "active":
            return Outcome(
                state=STATE_VERIFYING,
                message=f"Zone {remote.name} is {remote.status or 'not active'}",
                requeue_after=self.config.requeue.medium,
                reason=REASON_PROGRESSING,
                fields=fields,
            )

        message = f"Zone {remote.name} is active"
        if ctx.extras.get("default_conflicts"):
            message += "; isDefault conflicts with " + ", ".join(ctx.extras["default_conflicts"])
        return Outcome(state=STATE_READY, message=message, ready=True, fields=fields)

    def deletion_policy(self, ctx: ReconcileContext) -> str:
        return DELETION_POLICY_ORPHAN

    def remote_id(self, ctx: ReconcileContext) -> str | None:
        return ctx.status.get("zoneId")

    def delete(self, ctx: ReconcileContext) -> bool:
        return False


# Global handler instance
_handler = Reconciler(CloudflareDomainStrategy())


@kopf.on.create(API_GROUP_VERSION, KIND_DOMAIN)
@kopf.on.update(API_GROUP_VERSION, KIND_DOMAIN)
@kopf.on.resume(API_GROUP_VERSION, KIND_DOMAIN)
@kopf.timer(API_GROUP_VERSION, KIND_DOMAIN, interval=_handler.config.requeue.domain_resync)
def handle_domain(
    body: Any,
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    retry: int = 0,
    **kwargs: Any,
) -> None:
    """Handle CloudflareDomain reconciliation."""
    _handler.handle(body, spec, meta, status, patch, retry)


@kopf.on.delete(API_GROUP_VERSION, KIND_DOMAIN)
def handle_domain_delete(
    body: Any,
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    retry: int = 0,
    **kwargs: Any,
) -> None:
    """Handle CloudflareDomain deletion."""
    _handler.handle_delete(body, spec, meta, status, patch, retry)
