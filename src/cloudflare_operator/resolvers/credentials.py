"""Resolve credential references to Cloudflare API credentials."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from kubernetes import client

from ..config import get_config
from ..constants import (
    AUTH_TYPE_API_TOKEN,
    AUTH_TYPE_GLOBAL_API_KEY,
    DEFAULT_API_KEY_KEY,
    DEFAULT_API_TOKEN_KEY,
    DEFAULT_EMAIL_KEY,
    KIND_CREDENTIALS,
    PLURAL_CREDENTIALS,
)
from ..errors import ConfigurationError, CredentialNotFound
from ..handlers.shared import get_custom_object_with_cache, list_custom_objects
from ..utils.cache import get_cached_object, make_cache_key, set_cached_object
from ..utils.secrets import read_secret_data

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credential:
    """API credential for one Cloudflare account.

    Secret fields are excluded from ``repr`` so a credential never ends up
    in logs by accident.
    """

    name: str
    account_id: str
    auth_type: str = AUTH_TYPE_API_TOKEN
    api_token: str | None = field(default=None, repr=False)
    api_key: str | None = field(default=None, repr=False)
    email: str | None = field(default=None, repr=False)
    default_domain: str | None = None


class CredentialResolver:
    """Maps an optional ``credentialsRef`` to a :class:`Credential`.

    Args:
        custom_api: Kubernetes CustomObjectsApi instance
        core_api: Kubernetes CoreV1Api instance used to read secrets
        secret_namespace: Namespace used when a secretRef omits one
    """

    def __init__(self, custom_api: Any, core_api: Any, secret_namespace: str | None = None) -> None:
        self.custom_api = custom_api
        self.core_api = core_api
        self.secret_namespace = secret_namespace or get_config().cloudflare.credentials_namespace

    def resolve(self, ref: dict[str, Any] | None = None) -> Credential:
        """Resolve a reference, or the default credential when ``ref`` is empty.

        Raises:
            CredentialNotFound: The referenced or default credential is missing
            ConfigurationError: Several defaults exist, or the secret is unusable
        """
        name = (ref or {}).get("name")
        obj = self._get_named(name) if name else self._get_default()
        return self._load(obj)

    def _get_named(self, name: str) -> dict[str, Any]:
        try:
            return get_custom_object_with_cache(self.custom_api, KIND_CREDENTIALS, PLURAL_CREDENTIALS, name)
        except client.exceptions.ApiException as e:
            if e.status == 404:
                raise CredentialNotFound(f"CloudflareCredentials {name} not found") from e
            raise

    def _get_default(self) -> dict[str, Any]:
        defaults = [
            obj
            for obj in list_custom_objects(self.custom_api, PLURAL_CREDENTIALS)
            if (obj.get("spec") or {}).get("isDefault")
        ]
        if not defaults:
            raise CredentialNotFound("no credentialsRef given and no CloudflareCredentials is marked isDefault")
        if len(defaults) > 1:
            names = ", ".join(sorted(obj.get("metadata", {}).get("name", "") for obj in defaults))
            raise ConfigurationError(f"multiple CloudflareCredentials are marked isDefault: {names}")
        return defaults[0]

    def _load(self, obj: dict[str, Any]) -> Credential:
        meta = obj.get("metadata") or {}
        spec = obj.get("spec") or {}
        name = meta.get("name", "")

        # One entry per credential; a new resourceVersion replaces it
        cache_key = make_cache_key("Credential", "", name)
        version = meta.get("resourceVersion", "")
        cached = get_cached_object(cache_key)
        if cached is not None and cached[0] == version:
            return cached[1]

        account_id = spec.get("accountId")
        if not account_id:
            raise ConfigurationError(f"CloudflareCredentials {name} has no accountId")

        secret_ref = spec.get("secretRef") or {}
        secret_name = secret_ref.get("name")
        if not secret_name:
            raise ConfigurationError(f"CloudflareCredentials {name} has no secretRef.name")
        secret_ns = secret_ref.get("namespace") or self.secret_namespace

        auth_type = spec.get("authType", AUTH_TYPE_API_TOKEN)
        if auth_type == AUTH_TYPE_API_TOKEN:
            token_key = secret_ref.get("apiTokenKey") or DEFAULT_API_TOKEN_KEY
            data = read_secret_data(self.core_api, secret_ns, secret_name, required_keys=[token_key])
            credential = Credential(
                name=name,
                account_id=account_id,
                auth_type=auth_type,
                api_token=data[token_key],
                default_domain=spec.get("defaultDomain"),
            )
        elif auth_type == AUTH_TYPE_GLOBAL_API_KEY:
            key_key = secret_ref.get("apiKeyKey") or DEFAULT_API_KEY_KEY
            email_key = secret_ref.get("emailKey") or DEFAULT_EMAIL_KEY
            data = read_secret_data(self.core_api, secret_ns, secret_name, required_keys=[key_key, email_key])
            credential = Credential(
                name=name,
                account_id=account_id,
                auth_type=auth_type,
                api_key=data[key_key],
                email=data[email_key],
                default_domain=spec.get("defaultDomain"),
            )
        else:
            raise ConfigurationError(f"CloudflareCredentials {name} has unsupported authType {auth_type!r}")

        logger.debug("Resolved credentials %s for account %s", name, account_id)
        set_cached_object(cache_key, (version, credential))
        return credential
