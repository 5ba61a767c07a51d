"""Cloudflare API client and payload models."""

from .base import CloudflareAPI
from .client import CloudflareClient

__all__ = ["CloudflareAPI", "CloudflareClient"]
