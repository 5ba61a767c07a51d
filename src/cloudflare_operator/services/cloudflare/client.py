"""Cloudflare v4 REST API client."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from urllib.parse import quote

import requests
from pydantic import ValidationError

from ... import metrics
from ...config import CloudflareConfig, get_config
from ...constants import AUTH_TYPE_API_TOKEN
from ...errors import CloudflareAPIError, TransientError
from ...tracing import trace_span
from ...utils.rate_limit import rate_limit_cloudflare
from .models import (
    CloudflareAPIEnvelope,
    CloudflareQueue,
    CloudflareZone,
    IdentityProvider,
    R2Bucket,
    R2CustomDomain,
    RegistrarDomain,
)

if TYPE_CHECKING:
    from ...resolvers.credentials import Credential

logger = logging.getLogger(__name__)


class CloudflareClient:
    """Thin wrapper around the Cloudflare API for one account.

    Lookups return None for missing objects and deletions return False when
    the object was already gone, so callers can retry any call safely.
    """

    def __init__(
        self,
        credential: Credential,
        config: CloudflareConfig | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.credential = credential
        self.account_id = credential.account_id
        self.config = config or get_config().cloudflare
        self.session = session or requests.Session()

    # --------------------------------------------------
    # Internal helpers
    # --------------------------------------------------

    @property
    def _headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {"Content-Type": "application/json"}
        if self.credential.auth_type == AUTH_TYPE_API_TOKEN:
            headers["Authorization"] = f"Bearer {self.credential.api_token}"
        else:
            headers["X-Auth-Key"] = self.credential.api_key or ""
            headers["X-Auth-Email"] = self.credential.email or ""
        return headers

    def _account_path(self, suffix: str) -> str:
        return f"/accounts/{self.account_id}{suffix}"

    @rate_limit_cloudflare
    def _request(
        self,
        method: str,
        endpoint: str,
        *,
        operation: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
    ) -> CloudflareAPIEnvelope:
        url = f"{self.config.api_base_url}{endpoint}"
        logger.debug("Cloudflare %s %s", method, url)

        start_time = time.time()
        result = "error"
        try:
            with trace_span(f"cloudflare.{operation}", attributes={"http.method": method}):
                try:
                    response = self.session.request(
                        method,
                        url,
                        headers=self._headers,
                        params=params,
                        json=json_body,
                        timeout=self.config.request_timeout,
                    )
                except requests.Timeout as e:
                    raise TransientError(
                        f"{operation}: request timed out after {self.config.request_timeout}s"
                    ) from e
                except requests.ConnectionError as e:
                    raise TransientError(f"{operation}: connection failed: {e}") from e

                if response.status_code == 429:
                    metrics.rate_limit_hits_total.labels(api_type="cloudflare").inc()

                try:
                    raw = response.json()
                except ValueError:
                    raise CloudflareAPIError(
                        f"non-JSON response: {response.text[:200]}",
                        status_code=response.status_code,
                        operation=operation,
                    ) from None

                try:
                    envelope = CloudflareAPIEnvelope.model_validate(raw)
                except ValidationError as e:
                    raise CloudflareAPIError(
                        f"unexpected response schema: {e}",
                        status_code=response.status_code,
                        operation=operation,
                    ) from e

                if not envelope.success or response.status_code >= 400:
                    message = "; ".join(
                        f"{err.get('code', '')} {err.get('message', '')}".strip() for err in envelope.errors
                    ) or response.reason or "request failed"
                    raise CloudflareAPIError(
                        message,
                        status_code=response.status_code,
                        errors=envelope.errors,
                        operation=operation,
                    )

                result = "success"
                return envelope
        finally:
            metrics.api_call_total.labels(api_type="cloudflare", operation=operation, result=result).inc()
            metrics.api_call_duration_seconds.labels(api_type="cloudflare", operation=operation).observe(
                time.time() - start_time
            )

    def _get_or_none(self, endpoint: str, *, operation: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            return self._request("GET", endpoint, operation=operation, params=params).result
        except CloudflareAPIError as e:
            if e.status_code == 404:
                return None
            raise

    def _delete_if_exists(self, endpoint: str, *, operation: str) -> bool:
        try:
            self._request("DELETE", endpoint, operation=operation)
        except CloudflareAPIError as e:
            if e.status_code == 404:
                logger.info("Cloudflare %s: object already absent", operation)
                return False
            raise
        return True

    def _paginate(self, endpoint: str, *, operation: str, params: Optional[Dict[str, Any]] = None) -> List[Any]:
        items: List[Any] = []
        page = 1
        while True:
            query = dict(params or {})
            query.update({"page": page, "per_page": 50})
            envelope = self._request("GET", endpoint, operation=operation, params=query)
            items.extend(envelope.result or [])
            info = envelope.result_info or {}
            if page >= int(info.get("total_pages", 1) or 1):
                return items
            page += 1

    # --------------------------------------------------
    # Zones
    # --------------------------------------------------

    def find_zone(self, name: str) -> CloudflareZone | None:
        envelope = self._request(
            "GET",
            "/zones",
            operation="find_zone",
            params={"name": name, "account.id": self.account_id},
        )
        zones = envelope.result or []
        if not zones:
            return None
        return CloudflareZone.model_validate(zones[0])

    def get_zone(self, zone_id: str) -> CloudflareZone | None:
        raw = self._get_or_none(f"/zones/{zone_id}", operation="get_zone")
        return CloudflareZone.model_validate(raw) if raw else None

    # --------------------------------------------------
    # R2 buckets
    # --------------------------------------------------

    def _bucket_path(self, name: str, suffix: str = "") -> str:
        return self._account_path(f"/r2/buckets/{quote(name, safe='')}{suffix}")

    def get_bucket(self, name: str) -> R2Bucket | None:
        raw = self._get_or_none(self._bucket_path(name), operation="get_bucket")
        return R2Bucket.model_validate(raw) if raw else None

    def create_bucket(self, name: str, location_hint: str | None = None) -> R2Bucket:
        body: Dict[str, Any] = {"name": name}
        if location_hint:
            body["locationHint"] = location_hint
        envelope = self._request("POST", self._account_path("/r2/buckets"), operation="create_bucket", json_body=body)
        return R2Bucket.model_validate(envelope.result or {"name": name})

    def delete_bucket(self, name: str) -> bool:
        return self._delete_if_exists(self._bucket_path(name), operation="delete_bucket")

    def get_bucket_cors(self, name: str) -> List[Dict[str, Any]]:
        raw = self._get_or_none(self._bucket_path(name, "/cors"), operation="get_bucket_cors")
        return list((raw or {}).get("rules") or [])

    def put_bucket_cors(self, name: str, rules: List[Dict[str, Any]]) -> None:
        self._request("PUT", self._bucket_path(name, "/cors"), operation="put_bucket_cors", json_body={"rules": rules})

    def delete_bucket_cors(self, name: str) -> bool:
        return self._delete_if_exists(self._bucket_path(name, "/cors"), operation="delete_bucket_cors")

    def get_bucket_lifecycle(self, name: str) -> List[Dict[str, Any]]:
        raw = self._get_or_none(self._bucket_path(name, "/lifecycle"), operation="get_bucket_lifecycle")
        return list((raw or {}).get("rules") or [])

    def put_bucket_lifecycle(self, name: str, rules: List[Dict[str, Any]]) -> None:
        self._request(
            "PUT", self._bucket_path(name, "/lifecycle"), operation="put_bucket_lifecycle", json_body={"rules": rules}
        )

    def delete_bucket_lifecycle(self, name: str) -> bool:
        return self._delete_if_exists(self._bucket_path(name, "/lifecycle"), operation="delete_bucket_lifecycle")

    # --------------------------------------------------
    # R2 custom domains
    # --------------------------------------------------

    def _domain_path(self, bucket: str, domain: str = "") -> str:
        suffix = f"/domains/custom/{quote(domain, safe='')}" if domain else "/domains/custom"
        return self._bucket_path(bucket, suffix)

    def get_custom_domain(self, bucket: str, domain: str) -> R2CustomDomain | None:
        raw = self._get_or_none(self._domain_path(bucket, domain), operation="get_custom_domain")
        return R2CustomDomain.model_validate(raw) if raw else None

    def create_custom_domain(
        self, bucket: str, domain: str, zone_id: str, min_tls: str | None, enabled: bool
    ) -> R2CustomDomain:
        body: Dict[str, Any] = {"domain": domain, "zoneId": zone_id, "enabled": enabled}
        if min_tls:
            body["minTLS"] = min_tls
        envelope = self._request("POST", self._domain_path(bucket), operation="create_custom_domain", json_body=body)
        return R2CustomDomain.model_validate(envelope.result or body)

    def update_custom_domain(self, bucket: str, domain: str, min_tls: str | None, enabled: bool) -> R2CustomDomain:
        body: Dict[str, Any] = {"enabled": enabled}
        if min_tls:
            body["minTLS"] = min_tls
        envelope = self._request(
            "PUT", self._domain_path(bucket, domain), operation="update_custom_domain", json_body=body
        )
        return R2CustomDomain.model_validate(envelope.result or {"domain": domain, **body})

    def delete_custom_domain(self, bucket: str, domain: str) -> bool:
        return self._delete_if_exists(self._domain_path(bucket, domain), operation="delete_custom_domain")

    # --------------------------------------------------
    # Queues and event notifications
    # --------------------------------------------------

    def find_queue(self, name: str) -> CloudflareQueue | None:
        for raw in self._paginate(self._account_path("/queues"), operation="list_queues"):
            if raw.get("queue_name") == name:
                return CloudflareQueue.model_validate(raw)
        return None

    def _notification_path(self, bucket: str, queue_id: str = "") -> str:
        suffix = f"/configuration/queues/{queue_id}" if queue_id else "/configuration"
        return self._account_path(f"/event_notifications/r2/{quote(bucket, safe='')}{suffix}")

    def get_notification_rules(self, bucket: str, queue_id: str) -> List[Dict[str, Any]]:
        raw = self._get_or_none(self._notification_path(bucket), operation="get_notification_rules") or {}
        queues = raw.get("queues") or {}
        if isinstance(queues, dict):
            return list(queues.get(queue_id) or [])
        for entry in queues:
            if entry.get("queueId") == queue_id:
                return list(entry.get("rules") or [])
        return []

    def put_notification_rules(self, bucket: str, queue_id: str, rules: List[Dict[str, Any]]) -> None:
        self._request(
            "PUT",
            self._notification_path(bucket, queue_id),
            operation="put_notification_rules",
            json_body={"rules": rules},
        )

    def delete_notification_rules(self, bucket: str, queue_id: str) -> bool:
        return self._delete_if_exists(
            self._notification_path(bucket, queue_id), operation="delete_notification_rules"
        )

    # --------------------------------------------------
    # Registrar
    # --------------------------------------------------

    def get_registrar_domain(self, name: str) -> RegistrarDomain | None:
        raw = self._get_or_none(self._account_path(f"/registrar/domains/{name}"), operation="get_registrar_domain")
        return RegistrarDomain.model_validate(raw) if raw else None

    def update_registrar_domain(self, name: str, settings: Dict[str, Any]) -> RegistrarDomain:
        envelope = self._request(
            "PUT",
            self._account_path(f"/registrar/domains/{name}"),
            operation="update_registrar_domain",
            json_body=settings,
        )
        return RegistrarDomain.model_validate(envelope.result or {"name": name, **settings})

    # --------------------------------------------------
    # Access identity providers
    # --------------------------------------------------

    def list_identity_providers(self) -> List[IdentityProvider]:
        raws = self._paginate(self._account_path("/access/identity_providers"), operation="list_identity_providers")
        return [IdentityProvider.model_validate(raw) for raw in raws]

    def get_identity_provider(self, provider_id: str) -> IdentityProvider | None:
        raw = self._get_or_none(
            self._account_path(f"/access/identity_providers/{provider_id}"), operation="get_identity_provider"
        )
        return IdentityProvider.model_validate(raw) if raw else None

    def create_identity_provider(self, body: Dict[str, Any]) -> IdentityProvider:
        envelope = self._request(
            "POST",
            self._account_path("/access/identity_providers"),
            operation="create_identity_provider",
            json_body=body,
        )
        return IdentityProvider.model_validate(envelope.result)

    def update_identity_provider(self, provider_id: str, body: Dict[str, Any]) -> IdentityProvider:
        envelope = self._request(
            "PUT",
            self._account_path(f"/access/identity_providers/{provider_id}"),
            operation="update_identity_provider",
            json_body=body,
        )
        return IdentityProvider.model_validate(envelope.result)

    def delete_identity_provider(self, provider_id: str) -> bool:
        return self._delete_if_exists(
            self._account_path(f"/access/identity_providers/{provider_id}"), operation="delete_identity_provider"
        )
