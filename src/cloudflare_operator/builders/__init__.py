"""Builders translating resource specs into Cloudflare API payloads."""
