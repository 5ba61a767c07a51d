"""Pydantic models for Cloudflare API payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CloudflareAPIEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    success: bool = False
    result: Any = None
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    messages: List[Any] = Field(default_factory=list)
    result_info: Optional[Dict[str, Any]] = None


class CloudflareZone(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    status: str = ""
    name_servers: List[str] = Field(default_factory=list)
    account: Dict[str, Any] = Field(default_factory=dict)

    @property
    def account_id(self) -> str:
        return str(self.account.get("id", ""))


class R2Bucket(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    location: str = ""
    creation_date: Optional[str] = None


class R2CustomDomainStatus(BaseModel):
    model_config = ConfigDict(extra="allow")

    ownership: str = ""
    ssl: str = ""


class R2CustomDomain(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    domain: str
    enabled: bool = False
    status: R2CustomDomainStatus = Field(default_factory=R2CustomDomainStatus)
    min_tls: Optional[str] = Field(default=None, alias="minTLS")
    zone_id: Optional[str] = Field(default=None, alias="zoneId")
    zone_name: Optional[str] = Field(default=None, alias="zoneName")

    @property
    def is_active(self) -> bool:
        """Both the certificate and ownership verification completed."""
        return self.status.ssl == "active" and self.status.ownership == "active"


class CloudflareQueue(BaseModel):
    model_config = ConfigDict(extra="allow")

    queue_id: str
    queue_name: str


class RegistrarDomain(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = ""
    name: str = ""
    current_registrar: str = ""
    registry_statuses: str = ""
    locked: bool = False
    auto_renew: bool = False
    privacy: bool = False
    name_servers: List[str] = Field(default_factory=list)
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    transfer_in: Dict[str, Any] = Field(default_factory=dict)
    registrant_contact: Dict[str, Any] = Field(default_factory=dict)

    @property
    def transfer_status(self) -> str:
        """Return the first incomplete transfer step as ``step:status``."""
        for step in ("unlock_domain", "disable_privacy", "enter_auth_code", "approve_transfer", "accept_foa"):
            value = self.transfer_in.get(step)
            if value and value != "complete":
                return f"{step}:{value}"
        if self.transfer_in.get("can_cancel_transfer"):
            return "in_progress"
        return ""


class IdentityProvider(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    type: str
    config: Dict[str, Any] = Field(default_factory=dict)
    scim_config: Optional[Dict[str, Any]] = None
