"""Handler for R2Bucket CRD."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from typing import Any

import kopf

from ..builders.bucket import (
    bucket_name_from_spec,
    build_cors_rules,
    build_lifecycle_rules,
    cors_rules_match,
    lifecycle_rules_match,
)
from ..constants import API_GROUP_VERSION, KIND_R2_BUCKET, PLURAL_R2_BUCKET, STATE_CREATING, STATE_READY
from ..errors import CloudflareAPIError, ConfigurationError, is_conflict
from ..services.cloudflare.models import R2Bucket
from .engine import BaseStrategy, Mutation, Outcome, ReconcileContext, Reconciler


@dataclass
class RemoteBucket:
    """Remote bucket together with its rule documents."""

    bucket: R2Bucket | None
    cors: list[dict[str, Any]] = field(default_factory=list)
    lifecycle: list[dict[str, Any]] = field(default_factory=list)


class R2BucketStrategy(BaseStrategy):
    """Keeps an R2 bucket and its CORS and lifecycle documents in sync."""

    kind = KIND_R2_BUCKET
    plural = PLURAL_R2_BUCKET
    progressing_state = STATE_CREATING

    def bucket_name(self, ctx: ReconcileContext) -> str:
        return bucket_name_from_spec(ctx.spec, ctx.name)

    def describe(self, ctx: ReconcileContext) -> str:
        return f"R2 bucket {ctx.status.get('bucketName') or self.bucket_name(ctx)}"

    def prepare(self, ctx: ReconcileContext) -> None:
        tracked, name = ctx.status.get("bucketName"), self.bucket_name(ctx)
        if tracked and tracked != name:
            # A bucket keeps its name for life; its objects are never moved or dropped here
            raise ConfigurationError(
                f"spec.name cannot change from {tracked} to {name}; "
                f"bucket {tracked} is still managed by this resource"
            )

    def fetch(self, ctx: ReconcileContext) -> RemoteBucket:
        name = self.bucket_name(ctx)
        bucket = ctx.api.get_bucket(name)
        if bucket is None:
            return RemoteBucket(bucket=None)
        # The bucket exists, so a retry after a partial failure skips creation
        ctx.record(bucketName=name)
        return RemoteBucket(
            bucket=bucket,
            cors=ctx.api.get_bucket_cors(name),
            lifecycle=ctx.api.get_bucket_lifecycle(name),
        )

    def diff(self, ctx: ReconcileContext, remote: RemoteBucket) -> list[Mutation]:
        name = self.bucket_name(ctx)
        cors = build_cors_rules(ctx.spec)
        lifecycle = build_lifecycle_rules(ctx.spec)
        mutations: list[Mutation] = []

        if remote.bucket is None:
            mutations.append(
                Mutation(
                    operation="create_bucket",
                    description=f"R2 bucket {name}",
                    action=partial(self._create, ctx, name),
                    verb="create",
                )
            )
        # Spec unchanged since the last sync means any difference happened out of band
        drift = remote.bucket is not None and self.unchanged_since_sync(ctx, STATE_READY)

        if not cors_rules_match(cors, remote.cors):
            if cors:
                action = partial(ctx.api.put_bucket_cors, name, cors)
                operation = "put_bucket_cors"
            else:
                action = partial(ctx.api.delete_bucket_cors, name)
                operation = "delete_bucket_cors"
            mutations.append(
                Mutation(operation, f"CORS rules of bucket {name}", action, drift=drift, resource_type="cors")
            )

        if not lifecycle_rules_match(lifecycle, remote.lifecycle):
            if lifecycle:
                action = partial(ctx.api.put_bucket_lifecycle, name, lifecycle)
                operation = "put_bucket_lifecycle"
            else:
                action = partial(ctx.api.delete_bucket_lifecycle, name)
                operation = "delete_bucket_lifecycle"
            mutations.append(
                Mutation(operation, f"lifecycle rules of bucket {name}", action, drift=drift, resource_type="lifecycle")
            )
        return mutations

    def _create(self, ctx: ReconcileContext, name: str) -> None:
        try:
            ctx.api.create_bucket(name, ctx.spec.get("locationHint"))
        except CloudflareAPIError as e:
            if not is_conflict(e):
                raise
            # Created by an earlier attempt whose response was lost, or by someone else
        ctx.record(bucketName=name)

    def observe(self, ctx: ReconcileContext, remote: RemoteBucket) -> Outcome:
        name = self.bucket_name(ctx)
        if remote.bucket is None:
            return Outcome(
                state=STATE_CREATING,
                message=f"Waiting for bucket {name} to become visible",
                requeue_after=self.config.requeue.short,
            )
        fields: dict[str, Any] = {
            "bucketName": name,
            "corsRulesCount": len(remote.cors),
            "lifecycleRulesCount": len(remote.lifecycle),
        }
        if remote.bucket.location:
            fields["location"] = remote.bucket.location
        if remote.bucket.creation_date:
            fields["createdAt"] = remote.bucket.creation_date
        return Outcome(state=STATE_READY, message=f"Bucket {name} is ready", ready=True, fields=fields)

    def remote_id(self, ctx: ReconcileContext) -> str | None:
        return ctx.status.get("bucketName")

    def delete(self, ctx: ReconcileContext) -> bool:
        return ctx.api.delete_bucket(ctx.status.get("bucketName") or self.bucket_name(ctx))


# Global handler instance
_handler = Reconciler(R2BucketStrategy())


@kopf.on.create(API_GROUP_VERSION, KIND_R2_BUCKET)
@kopf.on.update(API_GROUP_VERSION, KIND_R2_BUCKET)
@kopf.on.resume(API_GROUP_VERSION, KIND_R2_BUCKET)
@kopf.timer(API_GROUP_VERSION, KIND_R2_BUCKET, interval=_handler.config.drift_check_interval)
def handle_bucket(
    body: Any,
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    retry: int = 0,
    **kwargs: Any,
) -> None:
    """Handle R2Bucket reconciliation."""
    _handler.handle(body, spec, meta, status, patch, retry)


@kopf.on.delete(API_GROUP_VERSION, KIND_R2_BUCKET)
def handle_bucket_delete(
    body: Any,
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    retry: int = 0,
    **kwargs: Any,
) -> None:
    """Handle R2Bucket deletion."""
    _handler.handle_delete(body, spec, meta, status, patch, retry)
