"""Status writer: persists reconcile outcomes onto resources."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

import kopf

from .. import metrics
from ..utils.conditions import set_ready_condition

if TYPE_CHECKING:
    from .engine import Outcome, ReconcileContext

logger = logging.getLogger(__name__)

GenerationProbe = Callable[["ReconcileContext"], "int | None"]


class StatusWriter:
    """Writes state, conditions and observedGeneration through a kopf patch.

    A reconcile that started on generation N must not overwrite the status of
    a newer generation. Before writing, the recorded ``observedGeneration``
    and, when a probe is configured, the live generation of the object are
    compared with the generation the reconcile worked on.

    Args:
        generation_probe: Optional callable returning the object's current
            generation (None when it cannot be determined)
    """

    def __init__(self, generation_probe: GenerationProbe | None = None) -> None:
        self.generation_probe = generation_probe

    def is_stale(self, ctx: ReconcileContext) -> bool:
        """Check whether a newer generation superseded this reconcile."""
        recorded = ctx.status.get("observedGeneration") or 0
        if recorded > ctx.generation:
            return True
        if self.generation_probe is None:
            return False
        live = self.generation_probe(ctx)
        return live is not None and live > ctx.generation

    def write(self, patch: kopf.Patch, ctx: ReconcileContext, outcome: Outcome) -> bool:
        """Persist the outcome.

        Returns:
            False when the write was skipped because the result is stale
        """
        if self.is_stale(ctx):
            logger.info(
                "Skipping stale status write for %s %s (generation %s superseded)",
                ctx.kind,
                ctx.name,
                ctx.generation,
            )
            metrics.api_call_total.labels(api_type="k8s", operation="write_status", result="stale").inc()
            return False

        conditions = set_ready_condition(
            ctx.conditions,
            outcome.ready,
            outcome.message,
            observed_generation=ctx.generation,
            reason=outcome.reason,
        )
        status_update: dict[str, Any] = {
            **ctx.updates,
            **outcome.fields,
            "state": outcome.state,
            "message": outcome.message,
            "observedGeneration": ctx.generation,
            "conditions": conditions,
        }
        patch.status.update(status_update)
        return True
