"""Builder for Access identity provider payloads."""

from __future__ import annotations

import hashlib
import json
import re
from typing import Any

# Config keys whose API name does not follow the camelCase -> snake_case rule
_CONFIG_KEY_OVERRIDES = {
    "oktaAuthorizationServerId": "authorization_server_id",
}

# Write-only values the API never returns in clear text
SECRET_CONFIG_KEYS = frozenset({"client_secret", "api_token"})

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


def to_snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub(r"_\1", key).lower()


def _convert(value: Any) -> Any:
    if isinstance(value, dict):
        return {to_snake_case(k): _convert(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_convert(item) for item in value]
    return value


def build_provider_config(config: dict[str, Any] | None, client_secret: str | None = None) -> dict[str, Any]:
    """Convert a spec ``config`` block to the API's snake_case form.

    Args:
        config: The spec config block
        client_secret: Secret read through ``configSecretRef``; overrides any
            inline ``clientSecret``
    """
    result: dict[str, Any] = {}
    for key, value in (config or {}).items():
        if value is None:
            continue
        result[_CONFIG_KEY_OVERRIDES.get(key) or to_snake_case(key)] = _convert(value)
    if client_secret:
        result["client_secret"] = client_secret
    return result


def build_scim_config(scim: dict[str, Any] | None) -> dict[str, Any] | None:
    """Convert a spec ``scimConfig`` block, None when the spec omits it."""
    if scim is None:
        return None
    return {to_snake_case(key): value for key, value in scim.items() if value is not None}


def build_provider_body(
    spec: dict[str, Any],
    resource_name: str,
    client_secret: str | None = None,
    remote_scim: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the create/update body for an identity provider.

    When the spec has no ``scimConfig`` the remote SCIM settings are sent
    back unchanged (minus the write-only secret) so an update never resets
    them.
    """
    body: dict[str, Any] = {
        "name": spec.get("name") or resource_name,
        "type": spec["type"],
        "config": build_provider_config(spec.get("config"), client_secret),
    }
    scim = build_scim_config(spec.get("scimConfig"))
    if scim is not None:
        body["scim_config"] = scim
    elif remote_scim:
        body["scim_config"] = {key: value for key, value in remote_scim.items() if key != "secret"}
    return body


def body_fingerprint(body: dict[str, Any]) -> str:
    """Stable digest of a desired body, including write-only secrets."""
    return hashlib.sha256(json.dumps(body, sort_keys=True, default=str).encode("utf-8")).hexdigest()[:16]


def provider_drift(body: dict[str, Any], remote: Any) -> list[str]:
    """Return the fields of ``body`` the remote provider does not match.

    Only keys the spec sets are compared, so server defaults never count as
    drift. Write-only secrets are skipped.
    """
    drifted = []
    if remote.name != body["name"]:
        drifted.append("name")
    if remote.type != body["type"]:
        drifted.append("type")
    for key, value in body["config"].items():
        if key in SECRET_CONFIG_KEYS:
            continue
        if remote.config.get(key) != value:
            drifted.append(f"config.{key}")
    if "scim_config" in body:
        remote_scim = remote.scim_config or {}
        for key, value in body["scim_config"].items():
            if key == "secret":
                continue
            if remote_scim.get(key) != value:
                drifted.append(f"scim_config.{key}")
    return drifted
