"""Cross-resource lookups: credentials and zones."""

from .credentials import Credential, CredentialResolver
from .domain import DomainResolver, ZoneBinding, ZoneResolution, matches_domain

__all__ = [
    "Credential",
    "CredentialResolver",
    "DomainResolver",
    "ZoneBinding",
    "ZoneResolution",
    "matches_domain",
]
