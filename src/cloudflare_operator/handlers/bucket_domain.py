"""Handler for R2BucketDomain CRD."""

from __future__ import annotations

from functools import partial
from typing import Any, Callable

import kopf

from ..config import OperatorConfig
from ..constants import (
    API_GROUP_VERSION,
    DELETION_POLICY_ORPHAN,
    KIND_R2_BUCKET_DOMAIN,
    PLURAL_R2_BUCKET_DOMAIN,
    REASON_PROGRESSING,
    STATE_ACTIVE,
    STATE_INITIALIZING,
)
from ..errors import CloudflareAPIError, ConfigurationError, is_conflict
from ..resolvers.domain import DomainResolver, normalize_hostname
from ..services.cloudflare.models import R2CustomDomain
from ..utils.conditions import set_dependency_ready_condition, set_zone_resolved_condition
from ..utils.errors import sanitize_exception
from .engine import BaseStrategy, Mutation, Outcome, ReconcileContext, Reconciler
from .shared import get_k8s_client, require_ready_bucket


class R2BucketDomainStrategy(BaseStrategy):
    """Attaches a custom domain to an R2 bucket.

    The domain is ``Initializing`` until Cloudflare reports both ownership
    verification and the TLS certificate as active.
    """

    kind = KIND_R2_BUCKET_DOMAIN
    plural = PLURAL_R2_BUCKET_DOMAIN
    progressing_state = STATE_INITIALIZING

    def __init__(
        self,
        config: OperatorConfig | None = None,
        custom_api_factory: Callable[[], Any] | None = None,
        resolver_factory: Callable[[Any], DomainResolver] | None = None,
    ) -> None:
        super().__init__(config)
        self.custom_api_factory = custom_api_factory or get_k8s_client
        self.resolver_factory = resolver_factory or DomainResolver.load

    def _bucket(self, ctx: ReconcileContext) -> str:
        return ctx.spec.get("bucketName", "")

    def _domain(self, ctx: ReconcileContext) -> str:
        return normalize_hostname(ctx.spec.get("domain", ""))

    def _enabled(self, ctx: ReconcileContext) -> bool:
        return bool(ctx.spec.get("enablePublicAccess", True))

    def describe(self, ctx: ReconcileContext) -> str:
        return f"custom domain {self._domain(ctx)} of bucket {self._bucket(ctx)}"

    def prepare(self, ctx: ReconcileContext) -> None:
        if not self._bucket(ctx) or not self._domain(ctx):
            raise ConfigurationError("spec.bucketName and spec.domain are required")

        custom_api = self.custom_api_factory()
        try:
            bucket = require_ready_bucket(custom_api, ctx.namespace, self._bucket(ctx))
        except ConfigurationError as e:
            ctx.set_condition(set_dependency_ready_condition, False, sanitize_exception(e))
            raise
        ctx.set_condition(set_dependency_ready_condition, True, f"R2Bucket {bucket['metadata']['name']} is Ready")

        manual_zone = ctx.spec.get("zoneId")
        if manual_zone:
            # A manual zone id always wins and is not checked against the bindings
            ctx.record(zoneId=manual_zone)
            ctx.set_condition(set_zone_resolved_condition, True, f"Using zone {manual_zone} from spec", reason="Manual")
            return
        try:
            resolution = self.resolver_factory(custom_api).resolve(self._domain(ctx))
        except ConfigurationError as e:
            ctx.set_condition(set_zone_resolved_condition, False, sanitize_exception(e), reason=type(e).__name__)
            raise
        ctx.record(zoneId=resolution.zone_id)
        ctx.set_condition(
            set_zone_resolved_condition,
            True,
            f"Resolved through CloudflareDomain {resolution.binding} ({resolution.domain})",
            reason="DefaultZone" if resolution.via_default else None,
        )

    def fetch(self, ctx: ReconcileContext) -> R2CustomDomain | None:
        return ctx.api.get_custom_domain(self._bucket(ctx), self._domain(ctx))

    def _previous(self, ctx: ReconcileContext) -> tuple[str, str] | None:
        """Bucket and domain of an attachment this resource made before a rename."""
        domain_id = ctx.stored("domainId")
        if not domain_id:
            return None
        bucket = ctx.stored("bucketName") or self._bucket(ctx)
        if (bucket, normalize_hostname(domain_id)) == (self._bucket(ctx), self._domain(ctx)):
            return None
        return bucket, domain_id

    def diff(self, ctx: ReconcileContext, remote: R2CustomDomain | None) -> list[Mutation]:
        bucket, domain = self._bucket(ctx), self._domain(ctx)
        min_tls = ctx.spec.get("minTls")
        enabled = self._enabled(ctx)
        what = self.describe(ctx)
        mutations: list[Mutation] = []

        previous = self._previous(ctx)
        if previous and self.deletion_policy(ctx) != DELETION_POLICY_ORPHAN:
            # The old hostname is detached before the new one is attached
            mutations.append(
                Mutation(
                    "delete_custom_domain",
                    f"custom domain {previous[1]} of bucket {previous[0]}",
                    partial(self._detach, ctx, *previous),
                    verb="delete",
                )
            )

        if remote is None:
            mutations.append(
                Mutation(
                    "create_custom_domain",
                    what,
                    partial(self._create, ctx, bucket, domain, min_tls, enabled),
                    verb="create",
                )
            )
        elif remote.enabled != enabled or (min_tls and remote.min_tls != min_tls):
            mutations.append(
                Mutation(
                    "update_custom_domain",
                    what,
                    partial(ctx.api.update_custom_domain, bucket, domain, min_tls, enabled),
                    drift=self.unchanged_since_sync(ctx, STATE_ACTIVE),
                    resource_type="custom_domain",
                )
            )
        return mutations

    def _create(self, ctx: ReconcileContext, bucket: str, domain: str, min_tls: str | None, enabled: bool) -> None:
        try:
            ctx.api.create_custom_domain(bucket, domain, ctx.stored("zoneId"), min_tls, enabled)
        except CloudflareAPIError as e:
            if not is_conflict(e):
                raise
        ctx.record(domainId=domain, bucketName=bucket)

    def _detach(self, ctx: ReconcileContext, bucket: str, domain: str) -> None:
        ctx.api.delete_custom_domain(bucket, domain)
        ctx.record(domainId=None, bucketName=None)

    def observe(self, ctx: ReconcileContext, remote: R2CustomDomain | None) -> Outcome:
        domain = self._domain(ctx)
        if remote is None:
            return Outcome(
                state=STATE_INITIALIZING,
                message=f"Waiting for custom domain {domain} to become visible",
                requeue_after=self.config.requeue.short,
                reason=REASON_PROGRESSING,
            )

        fields = {
            "domainId": remote.domain,
            "bucketName": self._bucket(ctx),
            "zoneId": remote.zone_id or ctx.stored("zoneId"),
            "enabled": remote.enabled,
            "minTls": remote.min_tls or ctx.spec.get("minTls"),
            "publicAccessEnabled": remote.enabled,
            "url": f"https://{domain}",
        }
        if not remote.is_active:
            return Outcome(
                state=STATE_INITIALIZING,
                message=(
                    f"Custom domain {domain} is initializing "
                    f"(ownership: {remote.status.ownership or 'pending'}, ssl: {remote.status.ssl or 'pending'})"
                ),
                requeue_after=self.config.requeue.medium,
                reason=REASON_PROGRESSING,
                fields=fields,
            )
        return Outcome(state=STATE_ACTIVE, message=f"Custom domain {domain} is active", ready=True, fields=fields)

    def remote_id(self, ctx: ReconcileContext) -> str | None:
        return ctx.status.get("domainId")

    def delete(self, ctx: ReconcileContext) -> bool:
        bucket = ctx.status.get("bucketName") or self._bucket(ctx)
        return ctx.api.delete_custom_domain(bucket, ctx.status.get("domainId") or self._domain(ctx))


# Global handler instance
_handler = Reconciler(R2BucketDomainStrategy())


@kopf.on.create(API_GROUP_VERSION, KIND_R2_BUCKET_DOMAIN)
@kopf.on.update(API_GROUP_VERSION, KIND_R2_BUCKET_DOMAIN)
@kopf.on.resume(API_GROUP_VERSION, KIND_R2_BUCKET_DOMAIN)
@kopf.timer(API_GROUP_VERSION, KIND_R2_BUCKET_DOMAIN, interval=_handler.config.drift_check_interval)
def handle_bucket_domain(
    body: Any,
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    retry: int = 0,
    **kwargs: Any,
) -> None:
    """Handle R2BucketDomain reconciliation."""
    _handler.handle(body, spec, meta, status, patch, retry)


@kopf.on.delete(API_GROUP_VERSION, KIND_R2_BUCKET_DOMAIN)
def handle_bucket_domain_delete(
    body: Any,
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    retry: int = 0,
    **kwargs: Any,
) -> None:
    """Handle R2BucketDomain deletion."""
    _handler.handle_delete(body, spec, meta, status, patch, retry)
