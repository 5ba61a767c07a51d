"""Handler for AccessIdentityProvider CRD."""

from __future__ import annotations

from functools import partial
from typing import Any, Callable

import kopf

from ..builders.identity_provider import body_fingerprint, build_provider_body, provider_drift
from ..config import OperatorConfig
from ..constants import API_GROUP_VERSION, KIND_IDENTITY_PROVIDER, PLURAL_IDENTITY_PROVIDER, STATE_READY
from ..errors import ConfigurationError
from ..services.cloudflare.models import IdentityProvider
from ..utils.secrets import get_secret_value
from .engine import BaseStrategy, Mutation, Outcome, ReconcileContext, Reconciler
from .shared import get_core_client


class AccessIdentityProviderStrategy(BaseStrategy):
    """Manages a Cloudflare Access identity provider.

    Write-only values (client secrets) cannot be compared with the remote
    provider, so a fingerprint of the last pushed body is kept in status and
    a changed fingerprint triggers an update on its own.
    """

    kind = KIND_IDENTITY_PROVIDER
    plural = PLURAL_IDENTITY_PROVIDER

    def __init__(
        self,
        config: OperatorConfig | None = None,
        core_api_factory: Callable[[], Any] | None = None,
    ) -> None:
        super().__init__(config)
        self.core_api_factory = core_api_factory or get_core_client

    def _name(self, ctx: ReconcileContext) -> str:
        return ctx.spec.get("name") or ctx.name

    def describe(self, ctx: ReconcileContext) -> str:
        return f"identity provider {self._name(ctx)}"

    def prepare(self, ctx: ReconcileContext) -> None:
        if not ctx.spec.get("type"):
            raise ConfigurationError("spec.type is required")
        ref = ctx.spec.get("configSecretRef")
        if ref:
            namespace = ref.get("namespace") or self.config.cloudflare.credentials_namespace
            ctx.extras["client_secret"] = get_secret_value(
                self.core_api_factory(), namespace, ref["name"], ref.get("key") or "clientSecret"
            )

    def fetch(self, ctx: ReconcileContext) -> IdentityProvider | None:
        provider_id = ctx.stored("providerId")
        if provider_id:
            provider = ctx.api.get_identity_provider(provider_id)
            if provider is not None:
                return provider
        # No usable id in status: adopt a provider with the same name
        name = self._name(ctx)
        for provider in ctx.api.list_identity_providers():
            if provider.name == name:
                ctx.record(providerId=provider.id)
                return provider
        return None

    def diff(self, ctx: ReconcileContext, remote: IdentityProvider | None) -> list[Mutation]:
        secret = ctx.extras.get("client_secret")
        fingerprint = body_fingerprint(build_provider_body(ctx.spec, ctx.name, secret))
        if remote is None:
            body = build_provider_body(ctx.spec, ctx.name, secret)
            return [
                Mutation(
                    "create_identity_provider",
                    self.describe(ctx),
                    partial(self._create, ctx, body, fingerprint),
                    verb="create",
                )
            ]

        body = build_provider_body(ctx.spec, ctx.name, secret, remote_scim=remote.scim_config)
        drifted = provider_drift(body, remote)
        if not drifted and ctx.stored("configHash") == fingerprint:
            return []
        return [
            Mutation(
                "update_identity_provider",
                self.describe(ctx),
                partial(self._update, ctx, remote.id, body, fingerprint),
                drift=bool(drifted) and self.unchanged_since_sync(ctx, STATE_READY),
                resource_type="identity_provider",
            )
        ]

    def _create(self, ctx: ReconcileContext, body: dict[str, Any], fingerprint: str) -> None:
        provider = ctx.api.create_identity_provider(body)
        ctx.record(providerId=provider.id, configHash=fingerprint)

    def _update(self, ctx: ReconcileContext, provider_id: str, body: dict[str, Any], fingerprint: str) -> None:
        ctx.api.update_identity_provider(provider_id, body)
        ctx.record(configHash=fingerprint)

    def observe(self, ctx: ReconcileContext, remote: IdentityProvider | None) -> Outcome:
        if remote is None:
            return Outcome(
                state=self.progressing_state,
                message=f"Waiting for identity provider {self._name(ctx)} to become visible",
                requeue_after=self.config.requeue.short,
            )
        return Outcome(
            state=STATE_READY,
            message=f"Identity provider {remote.name} ({remote.type}) is configured",
            ready=True,
            fields={"providerId": remote.id, "accountId": ctx.api.account_id},
        )

    def remote_id(self, ctx: ReconcileContext) -> str | None:
        return ctx.status.get("providerId")

    def delete(self, ctx: ReconcileContext) -> bool:
        provider_id = ctx.status.get("providerId")
        if not provider_id:
            return False
        return ctx.api.delete_identity_provider(provider_id)


# Global handler instance
_handler = Reconciler(AccessIdentityProviderStrategy())


@kopf.on.create(API_GROUP_VERSION, KIND_IDENTITY_PROVIDER)
@kopf.on.update(API_GROUP_VERSION, KIND_IDENTITY_PROVIDER)
@kopf.on.resume(API_GROUP_VERSION, KIND_IDENTITY_PROVIDER)
@kopf.timer(API_GROUP_VERSION, KIND_IDENTITY_PROVIDER, interval=_handler.config.drift_check_interval)
def handle_identity_provider(
    body: Any,
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    retry: int = 0,
    **kwargs: Any,
) -> None:
    """Handle AccessIdentityProvider reconciliation."""
    _handler.handle(body, spec, meta, status, patch, retry)


@kopf.on.delete(API_GROUP_VERSION, KIND_IDENTITY_PROVIDER)
def handle_identity_provider_delete(
    body: Any,
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    retry: int = 0,
    **kwargs: Any,
) -> None:
    """Handle AccessIdentityProvider deletion."""
    _handler.handle_delete(body, spec, meta, status, patch, retry)
