"""Handler for DomainRegistration CRD.

Only registrar settings of a domain already registered with Cloudflare are
managed. Domains are never purchased, transferred or deleted.
"""

from __future__ import annotations

from datetime import datetime, timezone
from functools import partial
from typing import Any

import kopf

from ..builders.registration import build_registrar_settings, contact_drift, settings_drift
from ..constants import (
    API_GROUP_VERSION,
    COND_CONTACT_DRIFT,
    DELETION_POLICY_ORPHAN,
    KIND_DOMAIN_REGISTRATION,
    PLURAL_DOMAIN_REGISTRATION,
    REASON_PROGRESSING,
    STATE_ACTIVE,
    STATE_EXPIRED,
    STATE_SYNCING,
    STATE_TRANSFER_PENDING,
)
from ..errors import ConfigurationError, PermanentError
from ..services.cloudflare.models import RegistrarDomain
from ..utils.conditions import remove_condition, update_condition
from .engine import BaseStrategy, Mutation, Outcome, ReconcileContext, Reconciler


def _timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _is_past(value: datetime) -> bool:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value < datetime.now(timezone.utc)


class DomainRegistrationStrategy(BaseStrategy):
    """Keeps registrar settings (auto-renew, privacy, lock, name servers) in sync."""

    kind = KIND_DOMAIN_REGISTRATION
    plural = PLURAL_DOMAIN_REGISTRATION
    progressing_state = STATE_SYNCING

    def _domain(self, ctx: ReconcileContext) -> str:
        return (ctx.spec.get("domainName") or "").strip().lower()

    def describe(self, ctx: ReconcileContext) -> str:
        return f"registrar settings of {self._domain(ctx)}"

    def prepare(self, ctx: ReconcileContext) -> None:
        if not self._domain(ctx):
            raise ConfigurationError("spec.domainName is required")

    def fetch(self, ctx: ReconcileContext) -> RegistrarDomain:
        domain = ctx.api.get_registrar_domain(self._domain(ctx))
        if domain is None:
            raise PermanentError(
                f"domain {self._domain(ctx)} is not registered with Cloudflare Registrar "
                f"in account {ctx.api.account_id}"
            )
        return domain

    def diff(self, ctx: ReconcileContext, remote: RegistrarDomain) -> list[Mutation]:
        settings = build_registrar_settings(ctx.spec)
        if settings is None:
            return []
        drifted = settings_drift(settings, remote)
        if not drifted:
            return []
        return [
            Mutation(
                "update_registrar_domain",
                f"{self.describe(ctx)} ({', '.join(drifted)})",
                partial(ctx.api.update_registrar_domain, self._domain(ctx), settings),
                drift=self.unchanged_since_sync(ctx, STATE_ACTIVE),
                resource_type="registrar_settings",
            )
        ]

    def observe(self, ctx: ReconcileContext, remote: RegistrarDomain) -> Outcome:
        drifted_contact = contact_drift(ctx.spec, remote.registrant_contact)
        if drifted_contact:
            ctx.set_condition(
                update_condition,
                COND_CONTACT_DRIFT,
                "True",
                "ContactMismatch",
                "Registrant contact differs at the registrar: " + ", ".join(drifted_contact),
            )
        else:
            ctx.conditions = remove_condition(ctx.conditions, COND_CONTACT_DRIFT)

        fields = {
            "domainId": remote.id or remote.name,
            "currentRegistrar": remote.current_registrar,
            "registryStatuses": remote.registry_statuses,
            "expiresAt": _timestamp(remote.expires_at),
            "createdAt": _timestamp(remote.created_at),
            "autoRenew": remote.auto_renew,
            "privacy": remote.privacy,
            "locked": remote.locked,
            "transferInStatus": remote.transfer_status,
        }
        domain = self._domain(ctx)

        if remote.transfer_status:
            return Outcome(
                state=STATE_TRANSFER_PENDING,
                message=f"Transfer of {domain} in progress ({remote.transfer_status})",
                requeue_after=self.config.requeue.very_long,
                reason=REASON_PROGRESSING,
                fields=fields,
            )
        if remote.expires_at and _is_past(remote.expires_at):
            return Outcome(
                state=STATE_EXPIRED,
                message=f"Registration of {domain} expired at {fields['expiresAt']}",
                reason="Expired",
                fields=fields,
            )
        return Outcome(state=STATE_ACTIVE, message=f"Domain {domain} is active", ready=True, fields=fields)

    def deletion_policy(self, ctx: ReconcileContext) -> str:
        return DELETION_POLICY_ORPHAN

    def remote_id(self, ctx: ReconcileContext) -> str | None:
        return ctx.status.get("domainId")

    def delete(self, ctx: ReconcileContext) -> bool:
        return False


# Global handler instance
_handler = Reconciler(DomainRegistrationStrategy())


@kopf.on.create(API_GROUP_VERSION, KIND_DOMAIN_REGISTRATION)
@kopf.on.update(API_GROUP_VERSION, KIND_DOMAIN_REGISTRATION)
@kopf.on.resume(API_GROUP_VERSION, KIND_DOMAIN_REGISTRATION)
@kopf.timer(API_GROUP_VERSION, KIND_DOMAIN_REGISTRATION, interval=_handler.config.requeue.registration_resync)
def handle_domain_registration(
    body: Any,
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    retry: int = 0,
    **kwargs: Any,
) -> None:
    """Handle DomainRegistration reconciliation."""
    _handler.handle(body, spec, meta, status, patch, retry)


@kopf.on.delete(API_GROUP_VERSION, KIND_DOMAIN_REGISTRATION)
def handle_domain_registration_delete(
    body: Any,
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    retry: int = 0,
    **kwargs: Any,
) -> None:
    """Handle DomainRegistration deletion."""
    _handler.handle_delete(body, spec, meta, status, patch, retry)
