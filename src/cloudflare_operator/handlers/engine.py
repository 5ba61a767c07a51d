"""Reconciliation engine shared by every resource kind.

Each kind supplies a strategy object that knows how to fetch its remote
representation, diff it against the desired spec and observe the resulting
state. The engine owns everything else: credential resolution, applying
mutations, the readback check, error classification, requeue intervals,
status persistence and the deletion branch.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

import kopf

from .. import metrics
from ..config import OperatorConfig, get_config
from ..constants import (
    DELETION_POLICY_DELETE,
    DELETION_POLICY_ORPHAN,
    REASON_CONFIGURATION_ERROR,
    REASON_PERMANENT_ERROR,
    REASON_PROGRESSING,
    REASON_RECONCILED,
    REASON_TRANSIENT_ERROR,
    STATE_DELETING,
    STATE_ERROR,
    STATE_PENDING,
)
from ..errors import (
    ConfigurationError,
    CredentialNotFound,
    DependencyNotReady,
    ErrorCategory,
    OperatorError,
    ZoneNotFound,
    classify_error,
    is_not_found,
)
from ..resolvers.credentials import Credential, CredentialResolver
from ..services.cloudflare import CloudflareAPI, CloudflareClient
from ..tracing import add_span_attribute, trace_span
from ..utils.backoff import backoff_delay, requeue_for
from ..utils.conditions import set_credentials_resolved_condition, set_deletion_blocked_condition
from ..utils.context import with_correlation_id
from ..utils.errors import sanitize_exception
from ..utils.events import (
    emit_created,
    emit_deleted,
    emit_deletion_blocked,
    emit_dependency_pending,
    emit_drift_detected,
    emit_orphaned,
    emit_reconcile_failed,
    emit_updated,
)
from .base import BaseHandler
from .shared import get_core_client, get_k8s_client, get_live_generation
from .status import StatusWriter

# Failures that mean "waiting on something else" rather than "broken"
PENDING_ERRORS = (CredentialNotFound, ZoneNotFound, DependencyNotReady)

_REASONS = {
    ErrorCategory.TRANSIENT: REASON_TRANSIENT_ERROR,
    ErrorCategory.CONFIGURATION: REASON_CONFIGURATION_ERROR,
    ErrorCategory.PERMANENT: REASON_PERMANENT_ERROR,
}


def _uid(meta: dict[str, Any]) -> str:
    return meta.get("uid") or f"{meta.get('namespace') or ''}/{meta.get('name', '')}"


@dataclass
class ReconcileContext:
    """Everything a strategy needs for one reconcile pass.

    ``updates`` collects status fields as they become known, so identifiers
    of remote objects created early in a pass survive a later failure.
    """

    kind: str
    body: Any
    spec: dict[str, Any]
    meta: dict[str, Any]
    status: dict[str, Any]
    retry: int = 0
    credential: Credential | None = None
    client: CloudflareAPI | None = None
    updates: dict[str, Any] = field(default_factory=dict)
    conditions: list[dict[str, Any]] = field(default_factory=list)
    applied: list[str] = field(default_factory=list)
    extras: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.meta.get("name", "")

    @property
    def namespace(self) -> str | None:
        return self.meta.get("namespace")

    @property
    def uid(self) -> str:
        return _uid(self.meta)

    @property
    def generation(self) -> int:
        return self.meta.get("generation") or 0

    @property
    def api(self) -> CloudflareAPI:
        if self.client is None:
            raise RuntimeError("Cloudflare client used before credentials were resolved")
        return self.client

    def stored(self, key: str, default: Any = None) -> Any:
        """Status value from this pass, falling back to the persisted status."""
        if key in self.updates:
            return self.updates[key]
        return self.status.get(key, default)

    def record(self, **fields: Any) -> None:
        self.updates.update(fields)

    def set_condition(self, setter: Callable[..., list[dict[str, Any]]], *args: Any, **kwargs: Any) -> None:
        """Apply a condition helper from ``utils.conditions`` to this pass."""
        self.conditions = setter(self.conditions, *args, observed_generation=self.generation, **kwargs)


@dataclass(frozen=True)
class Mutation:
    """One remote change computed by a strategy's diff.

    Args:
        operation: Client operation name, used as a metric label
        description: Human readable subject, e.g. "CORS rules of bucket logs"
        action: Performs the change
        verb: "create", "update" or "delete", selects the event emitted
        drift: True when correcting remote state that diverged out of band
        resource_type: Drift metric label
    """

    operation: str
    description: str
    action: Callable[[], Any]
    verb: str = "update"
    drift: bool = False
    resource_type: str = "resource"


@dataclass
class Outcome:
    """Result of a reconcile pass, handed to the status writer."""

    state: str
    message: str
    ready: bool = False
    requeue_after: float | None = None
    reason: str = REASON_RECONCILED
    fields: dict[str, Any] = field(default_factory=dict)
    category: ErrorCategory | None = None


class KindStrategy(Protocol):
    """Kind specific half of the reconcile protocol."""

    kind: str
    plural: str
    progressing_state: str

    def describe(self, ctx: ReconcileContext) -> str:
        """Human readable name of the remote object."""
        ...

    def prepare(self, ctx: ReconcileContext) -> None:
        """Resolve zones and referenced objects; raise when not ready."""
        ...

    def fetch(self, ctx: ReconcileContext) -> Any:
        """Read the remote representation, None when it does not exist."""
        ...

    def diff(self, ctx: ReconcileContext, remote: Any) -> list[Mutation]:
        """Compute the minimal set of changes bringing remote to desired."""
        ...

    def observe(self, ctx: ReconcileContext, remote: Any) -> Outcome:
        """Derive state and status fields from an in-sync remote object."""
        ...

    def deletion_policy(self, ctx: ReconcileContext) -> str:
        ...

    def remote_id(self, ctx: ReconcileContext) -> str | None:
        """Identifier of the remote object recorded in status, if any."""
        ...

    def delete(self, ctx: ReconcileContext) -> bool:
        """Delete the remote object; False when it was already absent."""
        ...


class BaseStrategy:
    """Defaults shared by the kind strategies."""

    kind = ""
    plural = ""
    progressing_state = STATE_PENDING

    def __init__(self, config: OperatorConfig | None = None) -> None:
        self.config = config or get_config()

    def describe(self, ctx: ReconcileContext) -> str:
        return f"{self.kind} {ctx.name}"

    def prepare(self, ctx: ReconcileContext) -> None:
        return None

    def deletion_policy(self, ctx: ReconcileContext) -> str:
        return ctx.spec.get("deletionPolicy") or DELETION_POLICY_DELETE

    def remote_id(self, ctx: ReconcileContext) -> str | None:
        return None

    def unchanged_since_sync(self, ctx: ReconcileContext, ready_state: str) -> bool:
        """Check whether the last pass reached ``ready_state`` on this generation.

        Differences found against such a resource were made out of band.
        """
        return ctx.status.get("state") == ready_state and ctx.status.get("observedGeneration") == ctx.generation


class Reconciler(BaseHandler):
    """Drives one kind's strategy through the shared reconcile protocol.

    Args:
        strategy: Kind specific strategy
        credential_resolver: Resolver for credentialsRef; built lazily from
            the in-cluster Kubernetes clients when omitted
        client_factory: Builds a Cloudflare client for a credential
        status_writer: Writer persisting outcomes; defaults to one that
            reads the live generation of the object before writing
        config: Operator configuration, defaults to the environment
    """

    def __init__(
        self,
        strategy: KindStrategy,
        credential_resolver: CredentialResolver | None = None,
        client_factory: Callable[[Credential], CloudflareAPI] | None = None,
        status_writer: StatusWriter | None = None,
        config: OperatorConfig | None = None,
    ) -> None:
        super().__init__(strategy.kind)
        self.strategy = strategy
        self._credential_resolver = credential_resolver
        self.client_factory = client_factory or CloudflareClient
        self.status_writer = status_writer or StatusWriter(generation_probe=self._live_generation)
        self.config = config or get_config()
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def credential_resolver(self) -> CredentialResolver:
        if self._credential_resolver is None:
            self._credential_resolver = CredentialResolver(get_k8s_client(), get_core_client())
        return self._credential_resolver

    def _lock_for(self, uid: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(uid)
            if lock is None:
                lock = self._locks[uid] = threading.Lock()
            return lock

    def _forget_lock(self, uid: str) -> None:
        with self._locks_guard:
            self._locks.pop(uid, None)

    def _live_generation(self, ctx: ReconcileContext) -> int | None:
        return get_live_generation(get_k8s_client(), self.strategy.plural, ctx.name, ctx.namespace)

    def _context(
        self,
        body: Any,
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        retry: int,
    ) -> ReconcileContext:
        status = dict(status or {})
        return ReconcileContext(
            kind=self.kind,
            body=body,
            spec=dict(spec or {}),
            meta=dict(meta or {}),
            status=status,
            retry=retry or 0,
            conditions=list(status.get("conditions") or []),
        )

    def _resolve_credentials(self, ctx: ReconcileContext) -> None:
        try:
            ctx.credential = self.credential_resolver.resolve(ctx.spec.get("credentialsRef"))
        except ConfigurationError as e:
            ctx.set_condition(set_credentials_resolved_condition, False, sanitize_exception(e))
            raise
        ctx.set_condition(
            set_credentials_resolved_condition,
            True,
            f"Using CloudflareCredentials {ctx.credential.name}",
        )
        add_span_attribute("cloudflare.account_id", ctx.credential.account_id)
        ctx.client = self.client_factory(ctx.credential)

    # Reconcile

    def reconcile(
        self,
        body: Any,
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        retry: int = 0,
    ) -> Outcome:
        """Run one reconcile pass and persist its outcome.

        Never raises for reconcile failures; they are classified into the
        returned outcome, whose ``requeue_after`` tells the caller when to
        come back.
        """
        meta = meta or {}
        if meta.get("deletionTimestamp"):
            self.finalize(body, spec, meta, status, patch, retry)
            return Outcome(STATE_DELETING, "Deletion in progress")

        with self._lock_for(_uid(meta)), with_correlation_id(), trace_span(
            f"reconcile.{self.kind}",
            attributes={"resource.name": meta.get("name", ""), "resource.namespace": meta.get("namespace") or ""},
        ):
            ctx = self._context(body, spec, meta, status, retry)
            try:
                outcome = self._reconcile(ctx)
            except Exception as e:
                outcome = self._failure_outcome(ctx, e)

            if self.status_writer.write(patch, ctx, outcome):
                metrics.resource_status_total.labels(kind=self.kind, status=outcome.state).inc()
        return outcome

    def _reconcile(self, ctx: ReconcileContext) -> Outcome:
        self._resolve_credentials(ctx)
        self.strategy.prepare(ctx)

        remote = self.strategy.fetch(ctx)
        mutations = self.strategy.diff(ctx, remote)
        if mutations:
            self._apply(ctx, mutations)
            # Readback: success is only reported once the API reflects the change
            remote = self.strategy.fetch(ctx)
            pending = self.strategy.diff(ctx, remote)
            if pending:
                subjects = ", ".join(m.description for m in pending)
                return Outcome(
                    state=self.strategy.progressing_state,
                    message=f"Waiting for Cloudflare to reflect changes to {subjects}",
                    requeue_after=self.config.requeue.short,
                    reason=REASON_PROGRESSING,
                )

        return self.strategy.observe(ctx, remote)

    def _apply(self, ctx: ReconcileContext, mutations: list[Mutation]) -> None:
        for mutation in mutations:
            if mutation.drift:
                metrics.drift_detected_total.labels(kind=self.kind, resource_type=mutation.resource_type).inc()
                self.log_warning(
                    ctx.meta,
                    f"Drift detected on {mutation.description}",
                    event="drift_detected",
                    reason="DriftDetected",
                )
                emit_drift_detected(ctx.body, mutation.description)

            with trace_span(f"cloudflare.{mutation.operation}"):
                try:
                    mutation.action()
                except Exception:
                    metrics.cloudflare_operations_total.labels(
                        kind=self.kind, operation=mutation.operation, result="failed"
                    ).inc()
                    raise
            metrics.cloudflare_operations_total.labels(
                kind=self.kind, operation=mutation.operation, result="success"
            ).inc()
            ctx.applied.append(mutation.operation)
            self.log_info(
                ctx.meta,
                f"Applied {mutation.operation} to {mutation.description}",
                event=mutation.operation,
                reason="Applied",
            )
            if mutation.verb == "create":
                emit_created(ctx.body, mutation.description)
            elif mutation.verb == "delete":
                emit_deleted(ctx.body, mutation.description)
            else:
                emit_updated(ctx.body, mutation.description)

    def _failure_outcome(self, ctx: ReconcileContext, error: Exception) -> Outcome:
        category = classify_error(error)
        message = sanitize_exception(error)
        pending = isinstance(error, PENDING_ERRORS)

        metrics.error_total.labels(kind=self.kind, error_type=type(error).__name__).inc()
        if pending:
            self.log_warning(
                ctx.meta,
                f"Waiting on dependency: {message}",
                event="dependency_pending",
                reason=type(error).__name__,
            )
            emit_dependency_pending(ctx.body, message)
        else:
            self.log_error(
                ctx.meta,
                f"Reconcile failed ({category.value})",
                error=error,
                reason=_REASONS[category],
            )
            emit_reconcile_failed(ctx.body, message)

        return Outcome(
            state=STATE_PENDING if pending else STATE_ERROR,
            message=message,
            ready=False,
            requeue_after=requeue_for(category, ctx.retry, self.config.requeue),
            reason=_REASONS[category],
            category=category,
        )

    # Deletion

    def finalize(
        self,
        body: Any,
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        retry: int = 0,
    ) -> None:
        """Run the deletion branch.

        The finalizer is only released once the remote object is gone, or
        when the policy is Orphan. Failures keep retrying through
        ``kopf.TemporaryError``; after max_attempts failures the
        resource additionally reports ``DeletionBlocked``.

        Raises:
            kopf.TemporaryError: Remote deletion failed and must be retried
        """
        meta = meta or {}
        with self._lock_for(_uid(meta)), with_correlation_id(), trace_span(
            f"finalize.{self.kind}",
            attributes={"resource.name": meta.get("name", ""), "resource.namespace": meta.get("namespace") or ""},
        ):
            ctx = self._context(body, spec, meta, status, retry)
            what = self.strategy.describe(ctx)
            if self.strategy.deletion_policy(ctx) == DELETION_POLICY_ORPHAN:
                self.log_info(ctx.meta, f"Leaving {what} in place", event="orphaned", reason="Orphaned")
                emit_orphaned(ctx.body, what)
                metrics.deletion_attempts_total.labels(kind=self.kind, result="orphaned").inc()
                self._release(ctx, patch)
                return

            try:
                self._resolve_credentials(ctx)
                deleted = self.strategy.delete(ctx)
            except CredentialNotFound as e:
                if self.strategy.remote_id(ctx):
                    raise self._deletion_failed(ctx, patch, what, e) from e
                # Nothing was ever provisioned with these credentials
                self.log_warning(
                    ctx.meta,
                    f"Releasing {what} without remote cleanup: {sanitize_exception(e)}",
                    event="deleted",
                    reason="NothingToDelete",
                )
                metrics.deletion_attempts_total.labels(kind=self.kind, result="absent").inc()
                self._release(ctx, patch)
                return
            except Exception as e:
                if not isinstance(e, OperatorError) and is_not_found(e):
                    deleted = False
                else:
                    raise self._deletion_failed(ctx, patch, what, e) from e

            metrics.deletion_attempts_total.labels(kind=self.kind, result="deleted" if deleted else "absent").inc()
            if deleted:
                self.log_info(ctx.meta, f"Deleted {what}", event="deleted", reason="Deleted")
                emit_deleted(ctx.body, what)
            else:
                self.log_info(ctx.meta, f"{what} already absent", event="deleted", reason="AlreadyAbsent")
            self._release(ctx, patch)

    def _release(self, ctx: ReconcileContext, patch: kopf.Patch) -> None:
        self.remove_finalizer(ctx.meta, patch)
        self._forget_lock(ctx.uid)

    def _deletion_failed(
        self, ctx: ReconcileContext, patch: kopf.Patch, what: str, error: Exception
    ) -> kopf.TemporaryError:
        """Record a failed deletion attempt and build the retry request."""
        attempts = ctx.retry + 1
        requeue = self.config.requeue
        message = f"Failed to delete {what} (attempt {attempts}): {sanitize_exception(error)}"
        metrics.deletion_attempts_total.labels(kind=self.kind, result="failed").inc()
        self.log_error(ctx.meta, message, error=error, event="delete_failed", reason="DeletionFailed")

        if attempts >= self.config.deletion.max_attempts:
            ctx.set_condition(set_deletion_blocked_condition, message)
            emit_deletion_blocked(ctx.body, message)
            category = classify_error(error)
            outcome = Outcome(STATE_ERROR, message, reason=_REASONS[category], category=category)
            delay = requeue.very_long
        else:
            outcome = Outcome(STATE_DELETING, message, reason=REASON_PROGRESSING)
            delay = backoff_delay(
                ctx.retry,
                requeue.short,
                requeue.max_backoff,
                requeue.max_backoff_exponent,
                requeue.jitter_factor,
            )
        self.status_writer.write(patch, ctx, outcome)
        return kopf.TemporaryError(message, delay=delay)

    # kopf adapters

    def handle(
        self,
        body: Any,
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        retry: int = 0,
    ) -> None:
        """Entry point for create/update/resume/timer handlers."""

        def _reconcile() -> None:
            if not (meta or {}).get("deletionTimestamp"):
                self.ensure_finalizer(meta, patch)
            outcome = self.reconcile(body, spec, meta, status, patch, retry)
            if outcome.requeue_after is not None:
                raise kopf.TemporaryError(outcome.message, delay=outcome.requeue_after)

        self.reconcile_with_metrics(body, meta, _reconcile)

    def handle_delete(
        self,
        body: Any,
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        retry: int = 0,
    ) -> None:
        """Entry point for delete handlers."""
        self.reconcile_with_metrics(body, meta, lambda: self.finalize(body, spec, meta, status, patch, retry))
