"""Utilities for reading Kubernetes secrets."""

from __future__ import annotations

import base64

from kubernetes import client

from ..errors import ConfigurationError


def _decode(value: str | bytes) -> str:
    # Handle both string and bytes (different versions of kubernetes client)
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return base64.b64decode(value).decode("utf-8")


def get_secret_value(
    api: client.CoreV1Api,
    namespace: str,
    secret_name: str,
    key: str,
) -> str:
    """Get a value from a Kubernetes secret.

    Args:
        api: Kubernetes API client
        namespace: Namespace of the secret
        secret_name: Name of the secret
        key: Key in the secret

    Returns:
        Secret value

    Raises:
        ConfigurationError: If secret or key not found
    """
    return read_secret_data(api, namespace, secret_name, required_keys=[key])[key]


def read_secret_data(
    api: client.CoreV1Api,
    namespace: str,
    secret_name: str,
    required_keys: list[str] | None = None,
) -> dict[str, str]:
    """Read all data from a Kubernetes secret.

    Args:
        api: Kubernetes API client
        namespace: Namespace of the secret
        secret_name: Name of the secret
        required_keys: Keys that must be present

    Returns:
        Dictionary of secret data (decoded)

    Raises:
        ConfigurationError: If the secret or a required key is missing
    """
    try:
        secret = api.read_namespaced_secret(name=secret_name, namespace=namespace)
    except client.exceptions.ApiException as e:
        if e.status == 404:
            raise ConfigurationError(f"Secret '{secret_name}' not found in namespace '{namespace}'") from e
        raise

    data = {key: _decode(value) for key, value in (secret.data or {}).items()}
    for key in required_keys or []:
        if not data.get(key):
            raise ConfigurationError(f"Key '{key}' not found in secret '{namespace}/{secret_name}'")
    return data
