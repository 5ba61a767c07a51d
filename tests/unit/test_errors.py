"""Tests for error sanitization utilities."""

from __future__ import annotations

from cloudflare_operator.utils.errors import (
    sanitize_dict,
    sanitize_error_message,
    sanitize_exception,
)


class TestSanitizeErrorMessage:
    """Test cases for sanitize_error_message function."""

    def test_sanitize_bearer_token(self):
        """Test that bearer tokens are sanitized."""
        message = "request failed: Authorization: Bearer abcDEF123-_.xyz"
        result = sanitize_error_message(message)
        assert "abcDEF123-_.xyz" not in result
        assert "Bearer [REDACTED]" in result

    def test_sanitize_global_api_key(self):
        """Test that global API key headers are sanitized."""
        message = "X-Auth-Key: 0123456789abcdef X-Auth-Email: ops@example.com"
        result = sanitize_error_message(message)
        assert "0123456789abcdef" not in result
        assert "ops@example.com" not in result
        assert result.count("[REDACTED]") == 2

    def test_sanitize_api_token_assignment(self):
        """Test that api_token=... is sanitized."""
        result = sanitize_error_message("invalid api_token=s3cr3t, retrying")
        assert "s3cr3t" not in result
        assert "[REDACTED]" in result

    def test_sanitize_client_secret(self):
        """Test that identity provider client secrets are sanitized."""
        result = sanitize_error_message("client_secret: hunter2 rejected")
        assert "hunter2" not in result

    def test_sanitize_case_insensitive(self):
        """Test that sanitization is case-insensitive."""
        message = "API_KEY: deadbeef"
        result = sanitize_error_message(message)
        assert "deadbeef" not in result
        assert "[REDACTED]" in result

    def test_no_sanitization_needed(self):
        """Test that messages without sensitive data remain unchanged."""
        message = "get_bucket: bucket not found (HTTP 404)"
        assert sanitize_error_message(message) == message


class TestSanitizeException:
    """Test cases for sanitize_exception function."""

    def test_sanitize_value_error(self):
        """Test sanitizing a ValueError."""
        error = ValueError("api_token: abc123")
        result = sanitize_exception(error)
        assert "abc123" not in result
        assert "[REDACTED]" in result

    def test_sanitize_generic_exception(self):
        """Test sanitizing a generic Exception."""
        assert sanitize_exception(Exception("Resource not found")) == "Resource not found"


class TestSanitizeDict:
    """Test cases for sanitize_dict function."""

    def test_sanitize_token_in_dict(self):
        """Test sanitizing api_token in dictionary."""
        result = sanitize_dict({"api_token": "abc", "account_id": "acc-123"})
        assert result["api_token"] == "[REDACTED]"
        assert result["account_id"] == "acc-123"

    def test_sanitize_nested_dict(self):
        """Test sanitizing nested dictionary."""
        data = {
            "config": {"client_secret": "hunter2", "client_id": "app"},
            "status": "ready",
        }
        result = sanitize_dict(data)
        assert result["config"]["client_secret"] == "[REDACTED]"
        assert result["config"]["client_id"] == "app"
        assert result["status"] == "ready"

    def test_sanitize_with_custom_keys(self):
        """Test sanitizing with additional custom keys."""
        result = sanitize_dict({"username": "admin", "api_key": "secret123"}, sensitive_keys={"username"})
        assert result["username"] == "[REDACTED]"
        assert result["api_key"] == "[REDACTED]"

    def test_sanitize_string_values(self):
        """Test sanitizing string values in dictionary."""
        data = {"message": "Error: api_key: deadbeef", "state": "Error"}
        result = sanitize_dict(data)
        assert "deadbeef" not in result["message"]
        assert result["state"] == "Error"

    def test_sanitize_mixed_types(self):
        """Test sanitizing dictionary with mixed value types."""
        data = {"authorization": "Bearer x", "count": 5, "enabled": True, "tags": ["a"]}
        result = sanitize_dict(data)
        assert result["authorization"] == "[REDACTED]"
        assert result["count"] == 5
        assert result["enabled"] is True
        assert result["tags"] == ["a"]

    def test_sanitize_empty_dict(self):
        """Test sanitizing empty dictionary."""
        assert sanitize_dict({}) == {}
