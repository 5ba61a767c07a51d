"""Kubernetes operator reconciling Cloudflare resources."""

__version__ = "0.1.0"
