"""Cloudflare API interface consumed by the reconcilers."""

from __future__ import annotations

from typing import Any, Protocol

from .models import (
    CloudflareQueue,
    CloudflareZone,
    IdentityProvider,
    R2Bucket,
    R2CustomDomain,
    RegistrarDomain,
)


class CloudflareAPI(Protocol):
    """Protocol defining the Cloudflare operations used by the operator.

    ``get_*``/``find_*`` return None when the remote object does not exist and
    ``delete_*`` return False when there was nothing to delete, so every call
    is safe to repeat after an indeterminate failure.
    """

    account_id: str

    def find_zone(self, name: str) -> CloudflareZone | None:
        """Look up a zone by name within the account."""
        ...

    def get_zone(self, zone_id: str) -> CloudflareZone | None:
        """Get zone details by id."""
        ...

    def get_bucket(self, name: str) -> R2Bucket | None:
        """Get an R2 bucket."""
        ...

    def create_bucket(self, name: str, location_hint: str | None = None) -> R2Bucket:
        """Create an R2 bucket."""
        ...

    def delete_bucket(self, name: str) -> bool:
        """Delete an R2 bucket."""
        ...

    def get_bucket_cors(self, name: str) -> list[dict[str, Any]]:
        """Get bucket CORS rules."""
        ...

    def put_bucket_cors(self, name: str, rules: list[dict[str, Any]]) -> None:
        """Replace bucket CORS rules."""
        ...

    def delete_bucket_cors(self, name: str) -> bool:
        """Remove the bucket CORS document."""
        ...

    def get_bucket_lifecycle(self, name: str) -> list[dict[str, Any]]:
        """Get bucket lifecycle rules."""
        ...

    def put_bucket_lifecycle(self, name: str, rules: list[dict[str, Any]]) -> None:
        """Replace bucket lifecycle rules."""
        ...

    def delete_bucket_lifecycle(self, name: str) -> bool:
        """Remove the bucket lifecycle document."""
        ...

    def get_custom_domain(self, bucket: str, domain: str) -> R2CustomDomain | None:
        """Get a custom domain attached to a bucket."""
        ...

    def create_custom_domain(
        self, bucket: str, domain: str, zone_id: str, min_tls: str | None, enabled: bool
    ) -> R2CustomDomain:
        """Attach a custom domain to a bucket."""
        ...

    def update_custom_domain(
        self, bucket: str, domain: str, min_tls: str | None, enabled: bool
    ) -> R2CustomDomain:
        """Update a custom domain's settings."""
        ...

    def delete_custom_domain(self, bucket: str, domain: str) -> bool:
        """Detach a custom domain from a bucket."""
        ...

    def find_queue(self, name: str) -> CloudflareQueue | None:
        """Look up a queue by name."""
        ...

    def get_notification_rules(self, bucket: str, queue_id: str) -> list[dict[str, Any]]:
        """Get the notification rules routing a bucket to a queue."""
        ...

    def put_notification_rules(self, bucket: str, queue_id: str, rules: list[dict[str, Any]]) -> None:
        """Replace the notification rules routing a bucket to a queue."""
        ...

    def delete_notification_rules(self, bucket: str, queue_id: str) -> bool:
        """Remove the notification rules routing a bucket to a queue."""
        ...

    def get_registrar_domain(self, name: str) -> RegistrarDomain | None:
        """Get registrar information for a domain."""
        ...

    def update_registrar_domain(self, name: str, settings: dict[str, Any]) -> RegistrarDomain:
        """Update registrar settings for a domain."""
        ...

    def list_identity_providers(self) -> list[IdentityProvider]:
        """List Access identity providers."""
        ...

    def get_identity_provider(self, provider_id: str) -> IdentityProvider | None:
        """Get an Access identity provider."""
        ...

    def create_identity_provider(self, body: dict[str, Any]) -> IdentityProvider:
        """Create an Access identity provider."""
        ...

    def update_identity_provider(self, provider_id: str, body: dict[str, Any]) -> IdentityProvider:
        """Update an Access identity provider."""
        ...

    def delete_identity_provider(self, provider_id: str) -> bool:
        """Delete an Access identity provider."""
        ...
