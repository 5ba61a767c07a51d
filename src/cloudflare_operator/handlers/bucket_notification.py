"""Handler for R2BucketNotification CRD."""

from __future__ import annotations

from functools import partial
from typing import Any, Callable

import kopf

from ..builders.notification import build_notification_rules, notification_rules_match
from ..config import OperatorConfig
from ..constants import (
    API_GROUP_VERSION,
    DELETION_POLICY_ORPHAN,
    KIND_R2_BUCKET_NOTIFICATION,
    PLURAL_R2_BUCKET_NOTIFICATION,
    STATE_ACTIVE,
)
from ..errors import ConfigurationError, DependencyNotReady
from ..utils.conditions import set_dependency_ready_condition
from ..utils.errors import sanitize_exception
from .engine import BaseStrategy, Mutation, Outcome, ReconcileContext, Reconciler
from .shared import get_k8s_client, require_ready_bucket


class R2BucketNotificationStrategy(BaseStrategy):
    """Routes R2 bucket events to a queue."""

    kind = KIND_R2_BUCKET_NOTIFICATION
    plural = PLURAL_R2_BUCKET_NOTIFICATION

    def __init__(
        self,
        config: OperatorConfig | None = None,
        custom_api_factory: Callable[[], Any] | None = None,
    ) -> None:
        super().__init__(config)
        self.custom_api_factory = custom_api_factory or get_k8s_client

    def _bucket(self, ctx: ReconcileContext) -> str:
        return ctx.spec.get("bucketName", "")

    def _queue_id(self, ctx: ReconcileContext) -> str:
        return ctx.extras["queue_id"]

    def describe(self, ctx: ReconcileContext) -> str:
        return f"notification rules from bucket {self._bucket(ctx)} to queue {ctx.spec.get('queueName', '')}"

    def prepare(self, ctx: ReconcileContext) -> None:
        queue_name = ctx.spec.get("queueName")
        if not self._bucket(ctx) or not queue_name:
            raise ConfigurationError("spec.bucketName and spec.queueName are required")

        try:
            require_ready_bucket(self.custom_api_factory(), ctx.namespace, self._bucket(ctx))
            queue = ctx.api.find_queue(queue_name)
            if queue is None:
                raise DependencyNotReady(f"queue {queue_name} not found in account {ctx.api.account_id}")
        except ConfigurationError as e:
            ctx.set_condition(set_dependency_ready_condition, False, sanitize_exception(e))
            raise
        ctx.set_condition(set_dependency_ready_condition, True, f"Bucket and queue {queue_name} are available")
        ctx.extras["queue_id"] = queue.queue_id

        tracked = (ctx.status.get("bucketName") or self._bucket(ctx), ctx.status.get("queueId"))
        replaced = bool(tracked[1]) and tracked != (self._bucket(ctx), queue.queue_id)
        if replaced and self.deletion_policy(ctx) != DELETION_POLICY_ORPHAN:
            # Status keeps pointing at the old rules until they are removed
            ctx.extras["previous"] = tracked
        else:
            ctx.record(queueId=queue.queue_id, bucketName=self._bucket(ctx))

    def fetch(self, ctx: ReconcileContext) -> list[dict[str, Any]]:
        return ctx.api.get_notification_rules(self._bucket(ctx), self._queue_id(ctx))

    def diff(self, ctx: ReconcileContext, remote: list[dict[str, Any]]) -> list[Mutation]:
        rules = build_notification_rules(ctx.spec)
        bucket, queue_id = self._bucket(ctx), self._queue_id(ctx)
        mutations: list[Mutation] = []

        previous = ctx.extras.get("previous")
        if previous:
            mutations.append(
                Mutation(
                    "delete_notification_rules",
                    f"notification rules from bucket {previous[0]} to queue {previous[1]}",
                    partial(self._release_previous, ctx, *previous),
                    verb="delete",
                )
            )

        if notification_rules_match(rules, remote):
            return mutations
        drift = bool(remote) and self.unchanged_since_sync(ctx, STATE_ACTIVE)
        if rules:
            mutations.append(
                Mutation(
                    "put_notification_rules",
                    self.describe(ctx),
                    partial(ctx.api.put_notification_rules, bucket, queue_id, rules),
                    verb="update" if remote else "create",
                    drift=drift,
                    resource_type="notification_rules",
                )
            )
        else:
            mutations.append(
                Mutation(
                    "delete_notification_rules",
                    self.describe(ctx),
                    partial(ctx.api.delete_notification_rules, bucket, queue_id),
                    verb="delete",
                    drift=drift,
                    resource_type="notification_rules",
                )
            )
        return mutations

    def _release_previous(self, ctx: ReconcileContext, bucket: str, queue_id: str) -> None:
        ctx.api.delete_notification_rules(bucket, queue_id)
        del ctx.extras["previous"]
        ctx.record(queueId=self._queue_id(ctx), bucketName=self._bucket(ctx))

    def observe(self, ctx: ReconcileContext, remote: list[dict[str, Any]]) -> Outcome:
        return Outcome(
            state=STATE_ACTIVE,
            message=f"{len(remote)} notification rule(s) active",
            ready=True,
            fields={"queueId": self._queue_id(ctx), "bucketName": self._bucket(ctx), "ruleCount": len(remote)},
        )

    def remote_id(self, ctx: ReconcileContext) -> str | None:
        return ctx.status.get("queueId")

    def delete(self, ctx: ReconcileContext) -> bool:
        queue_id = ctx.status.get("queueId")
        if not queue_id:
            queue = ctx.api.find_queue(ctx.spec.get("queueName", ""))
            if queue is None:
                return False
            queue_id = queue.queue_id
        return ctx.api.delete_notification_rules(ctx.status.get("bucketName") or self._bucket(ctx), queue_id)


# Global handler instance
_handler = Reconciler(R2BucketNotificationStrategy())


@kopf.on.create(API_GROUP_VERSION, KIND_R2_BUCKET_NOTIFICATION)
@kopf.on.update(API_GROUP_VERSION, KIND_R2_BUCKET_NOTIFICATION)
@kopf.on.resume(API_GROUP_VERSION, KIND_R2_BUCKET_NOTIFICATION)
@kopf.timer(API_GROUP_VERSION, KIND_R2_BUCKET_NOTIFICATION, interval=_handler.config.drift_check_interval)
def handle_bucket_notification(
    body: Any,
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    retry: int = 0,
    **kwargs: Any,
) -> None:
    """Handle R2BucketNotification reconciliation."""
    _handler.handle(body, spec, meta, status, patch, retry)


@kopf.on.delete(API_GROUP_VERSION, KIND_R2_BUCKET_NOTIFICATION)
def handle_bucket_notification_delete(
    body: Any,
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    retry: int = 0,
    **kwargs: Any,
) -> None:
    """Handle R2BucketNotification deletion."""
    _handler.handle_delete(body, spec, meta, status, patch, retry)
