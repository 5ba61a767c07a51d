"""Utilities for managing Kubernetes conditions.

Conditions are keyed by ``type``: writing a condition replaces any existing
entry of the same type, so a list never holds two entries for one type.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from ..constants import (
    COND_CREDENTIALS_RESOLVED,
    COND_DELETION_BLOCKED,
    COND_DEPENDENCY_READY,
    COND_READY,
    COND_ZONE_RESOLVED,
)


def _copy_conditions(conditions: Iterable[Any] | None) -> list[dict[str, Any]]:
    return [dict(cond) for cond in (conditions or [])]


def update_condition(
    conditions: Iterable[Any] | None,
    condition_type: str,
    status: str,
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Update or add a condition to the conditions list.

    Args:
        conditions: Existing conditions (not modified)
        condition_type: Type of condition
        status: Status of condition ("True", "False", "Unknown")
        reason: Reason for the condition
        message: Human-readable message
        observed_generation: Generation when condition was observed

    Returns:
        New list of conditions
    """
    now = datetime.now(timezone.utc).isoformat()
    updated = _copy_conditions(conditions)

    new_condition: dict[str, Any] = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": now,
    }
    if observed_generation is not None:
        new_condition["observedGeneration"] = observed_generation

    for idx, cond in enumerate(updated):
        if cond.get("type") == condition_type:
            # Only update lastTransitionTime if status changed
            if cond.get("status") == status:
                new_condition["lastTransitionTime"] = cond.get("lastTransitionTime", now)
            updated[idx] = new_condition
            return updated

    updated.append(new_condition)
    return updated


def remove_condition(conditions: Iterable[Any] | None, condition_type: str) -> list[dict[str, Any]]:
    """Return the conditions without the given type."""
    return [cond for cond in _copy_conditions(conditions) if cond.get("type") != condition_type]


def get_condition(conditions: Iterable[Any] | None, condition_type: str) -> dict[str, Any] | None:
    """Return the condition of the given type, if present."""
    for cond in conditions or []:
        if cond.get("type") == condition_type:
            return dict(cond)
    return None


def is_condition_true(conditions: Iterable[Any] | None, condition_type: str) -> bool:
    """Check whether a condition of the given type has status True."""
    cond = get_condition(conditions, condition_type)
    return cond is not None and cond.get("status") == "True"


def set_ready_condition(
    conditions: Iterable[Any] | None,
    status: bool,
    message: str,
    observed_generation: int | None = None,
    reason: str | None = None,
) -> list[dict[str, Any]]:
    """Set the Ready condition."""
    return update_condition(
        conditions,
        COND_READY,
        "True" if status else "False",
        reason or ("Ready" if status else "NotReady"),
        message,
        observed_generation,
    )


def set_credentials_resolved_condition(
    conditions: Iterable[Any] | None,
    status: bool,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Set the CredentialsResolved condition."""
    return update_condition(
        conditions,
        COND_CREDENTIALS_RESOLVED,
        "True" if status else "False",
        "CredentialsResolved" if status else "CredentialsNotFound",
        message,
        observed_generation,
    )


def set_zone_resolved_condition(
    conditions: Iterable[Any] | None,
    status: bool,
    message: str,
    observed_generation: int | None = None,
    reason: str | None = None,
) -> list[dict[str, Any]]:
    """Set the ZoneResolved condition."""
    return update_condition(
        conditions,
        COND_ZONE_RESOLVED,
        "True" if status else "False",
        reason or ("ZoneResolved" if status else "ZoneNotFound"),
        message,
        observed_generation,
    )


def set_dependency_ready_condition(
    conditions: Iterable[Any] | None,
    status: bool,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Set the DependencyReady condition."""
    return update_condition(
        conditions,
        COND_DEPENDENCY_READY,
        "True" if status else "False",
        "DependencyReady" if status else "DependencyNotReady",
        message,
        observed_generation,
    )


def set_deletion_blocked_condition(
    conditions: Iterable[Any] | None,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Set the DeletionBlocked condition."""
    return update_condition(
        conditions,
        COND_DELETION_BLOCKED,
        "True",
        "DeletionRetriesExhausted",
        message,
        observed_generation,
    )
