"""Builder for R2 event notification rules."""

from __future__ import annotations

from typing import Any


def normalize_notification_rule(rule: dict[str, Any]) -> dict[str, Any]:
    """Normalize a rule from either the spec or the API.

    The spec names the event list ``eventTypes`` while the API uses
    ``eventType``. The server assigned ``ruleId`` is not part of the
    desired state and is dropped.
    """
    event_types = rule.get("eventTypes")
    if event_types is None:
        event_types = rule.get("eventType") or []
    if isinstance(event_types, str):
        event_types = [event_types]

    normalized: dict[str, Any] = {"eventType": sorted(set(event_types))}
    for key in ("prefix", "suffix", "description"):
        if rule.get(key):
            normalized[key] = rule[key]
    return normalized


def build_notification_rules(spec: dict[str, Any]) -> list[dict[str, Any]]:
    """Build the ordered rule list pushed for a bucket and queue pair."""
    return [normalize_notification_rule(rule) for rule in spec.get("rules") or []]


def notification_rules_match(desired: list[dict[str, Any]], remote: list[dict[str, Any]]) -> bool:
    """Compare rules as ordered normalized lists."""
    return desired == [normalize_notification_rule(rule) for rule in remote]
