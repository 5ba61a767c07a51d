"""Builder for R2 bucket configurations."""

from __future__ import annotations

from typing import Any


def bucket_name_from_spec(spec: dict[str, Any], resource_name: str) -> str:
    """Return the remote bucket name, defaulting to the resource name."""
    return spec.get("name") or resource_name


def normalize_cors_rule(rule: dict[str, Any]) -> dict[str, Any]:
    """Normalize a CORS rule so spec and API representations compare equal.

    Methods are upper-cased, empty optional lists and unset fields are
    dropped.
    """
    normalized: dict[str, Any] = {
        "allowedOrigins": list(rule.get("allowedOrigins") or []),
        "allowedMethods": [method.upper() for method in rule.get("allowedMethods") or []],
    }
    if rule.get("id"):
        normalized["id"] = rule["id"]
    for key in ("allowedHeaders", "exposeHeaders"):
        if rule.get(key):
            normalized[key] = list(rule[key])
    if rule.get("maxAgeSeconds") is not None:
        normalized["maxAgeSeconds"] = int(rule["maxAgeSeconds"])
    return normalized


def normalize_lifecycle_rule(rule: dict[str, Any]) -> dict[str, Any]:
    """Normalize a lifecycle rule so spec and API representations compare equal."""
    normalized: dict[str, Any] = {
        "id": rule.get("id", ""),
        "enabled": bool(rule.get("enabled", False)),
    }
    if rule.get("prefix"):
        normalized["prefix"] = rule["prefix"]

    expiration = rule.get("expiration") or {}
    expiration_config: dict[str, Any] = {}
    if expiration.get("days") is not None:
        expiration_config["days"] = int(expiration["days"])
    if expiration.get("date"):
        expiration_config["date"] = expiration["date"]
    if expiration_config:
        normalized["expiration"] = expiration_config

    abort = rule.get("abortIncompleteMultipartUpload") or {}
    if abort.get("daysAfterInitiation") is not None:
        normalized["abortIncompleteMultipartUpload"] = {
            "daysAfterInitiation": int(abort["daysAfterInitiation"]),
        }
    return normalized


def build_cors_rules(spec: dict[str, Any]) -> list[dict[str, Any]]:
    """Build the CORS document from the spec, preserving rule order."""
    return [normalize_cors_rule(rule) for rule in spec.get("cors") or []]


def build_lifecycle_rules(spec: dict[str, Any]) -> list[dict[str, Any]]:
    """Build the lifecycle document from the spec."""
    return [normalize_lifecycle_rule(rule) for rule in spec.get("lifecycle") or []]


def cors_rules_match(desired: list[dict[str, Any]], remote: list[dict[str, Any]]) -> bool:
    """Compare CORS rules positionally.

    CORS rules have no natural key, so position is their identity. Ids the
    spec leaves out are ignored on the remote side.
    """
    if len(desired) != len(remote):
        return False
    for want, have in zip(desired, remote):
        have = normalize_cors_rule(have)
        if "id" not in want:
            have.pop("id", None)
        if want != have:
            return False
    return True


def lifecycle_rules_match(desired: list[dict[str, Any]], remote: list[dict[str, Any]]) -> bool:
    """Compare lifecycle rules as sets keyed by rule id."""
    want = {rule["id"]: rule for rule in desired}
    have = {rule.get("id", ""): normalize_lifecycle_rule(rule) for rule in remote}
    return want == have
