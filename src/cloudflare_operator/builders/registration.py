"""Builder for registrar domain settings."""

from __future__ import annotations

from typing import Any

# Spec contact field -> registrar API field
CONTACT_FIELDS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "organization": "organization",
    "address": "address",
    "address2": "address2",
    "city": "city",
    "state": "state",
    "zip": "zip",
    "country": "country",
    "phone": "phone",
    "email": "email",
    "fax": "fax",
}


def normalize_name_servers(name_servers: list[str] | None) -> list[str]:
    """Lower-case, strip trailing dots and sort so order never counts as drift."""
    return sorted({ns.strip().rstrip(".").lower() for ns in name_servers or [] if ns.strip()})


def build_registrar_settings(spec: dict[str, Any]) -> dict[str, Any] | None:
    """Build the registrar settings body from ``spec.configuration``.

    Returns None when the spec does not manage settings.
    """
    configuration = spec.get("configuration")
    if configuration is None:
        return None
    settings: dict[str, Any] = {
        "auto_renew": bool(configuration.get("autoRenew", False)),
        "privacy": bool(configuration.get("privacy", False)),
        "locked": bool(configuration.get("locked", False)),
    }
    if configuration.get("nameServers"):
        settings["name_servers"] = list(configuration["nameServers"])
    return settings


def settings_drift(desired: dict[str, Any], remote: Any) -> list[str]:
    """Return the names of settings whose remote value differs."""
    drifted = [key for key in ("auto_renew", "privacy", "locked") if getattr(remote, key) != desired[key]]
    if "name_servers" in desired and normalize_name_servers(desired["name_servers"]) != normalize_name_servers(
        remote.name_servers
    ):
        drifted.append("name_servers")
    return drifted


def contact_drift(spec: dict[str, Any], remote_contact: dict[str, Any]) -> list[str]:
    """Return the spec contact fields that differ from the registrar's record."""
    contact = spec.get("registrantContact") or {}
    drifted = []
    for spec_key, api_key in CONTACT_FIELDS.items():
        want = (contact.get(spec_key) or "").strip()
        have = str(remote_contact.get(api_key) or "").strip()
        if want and want.lower() != have.lower():
            drifted.append(spec_key)
    return drifted
