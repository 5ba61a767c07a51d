"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_CREATED,
    EVENT_REASON_DELETED,
    EVENT_REASON_DELETION_BLOCKED,
    EVENT_REASON_DEPENDENCY_PENDING,
    EVENT_REASON_DRIFT_DETECTED,
    EVENT_REASON_ORPHANED,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RECONCILE_STARTED,
    EVENT_REASON_UPDATED,
)


def emit_event(
    body: Any,
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        body: Resource body (or metadata carrying apiVersion/kind/name/uid)
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_reconcile_started(body: Any) -> None:
    """Emit reconcile started event."""
    emit_event(body, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")


def emit_reconcile_failed(body: Any, message: str) -> None:
    """Emit reconcile failed event."""
    emit_event(body, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_created(body: Any, what: str) -> None:
    """Emit remote object created event."""
    emit_event(body, EVENT_REASON_CREATED, f"{what} created")


def emit_updated(body: Any, what: str) -> None:
    """Emit remote object updated event."""
    emit_event(body, EVENT_REASON_UPDATED, f"{what} updated")


def emit_deleted(body: Any, what: str) -> None:
    """Emit remote object deleted event."""
    emit_event(body, EVENT_REASON_DELETED, f"{what} deleted")


def emit_orphaned(body: Any, what: str) -> None:
    """Emit event for a remote object left in place on deletion."""
    emit_event(body, EVENT_REASON_ORPHANED, f"{what} left in place per deletionPolicy=Orphan")


def emit_drift_detected(body: Any, what: str) -> None:
    """Emit configuration drift event."""
    emit_event(body, EVENT_REASON_DRIFT_DETECTED, f"Drift detected: {what}")


def emit_dependency_pending(body: Any, message: str) -> None:
    """Emit event for a resource waiting on another resource."""
    emit_event(body, EVENT_REASON_DEPENDENCY_PENDING, message, type_="Warning")


def emit_deletion_blocked(body: Any, message: str) -> None:
    """Emit event for deletion that keeps failing."""
    emit_event(body, EVENT_REASON_DELETION_BLOCKED, message, type_="Warning")
