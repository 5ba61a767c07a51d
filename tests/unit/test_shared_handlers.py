"""Tests for shared handler utilities."""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest
from kubernetes import client

from cloudflare_operator.errors import DependencyNotReady
from cloudflare_operator.handlers.shared import (
    find_r2_bucket,
    get_custom_object_with_cache,
    get_k8s_client,
    get_live_generation,
    list_custom_objects,
    require_ready_bucket,
)


def _bucket(name: str, remote_name: str | None = None, state: str | None = None) -> dict:
    obj = {"metadata": {"name": name}, "spec": {}, "status": {}}
    if remote_name:
        obj["spec"]["name"] = remote_name
    if state:
        obj["status"]["state"] = state
    return obj


class TestGetCustomObjectWithCache:
    """Test cases for get_custom_object_with_cache function."""

    @patch("cloudflare_operator.handlers.shared.get_cached_object")
    @patch("cloudflare_operator.handlers.shared.metrics")
    def test_from_cache(self, mock_metrics, mock_get_cached):
        """Test getting an object from cache."""
        mock_api = Mock()
        cached = {"metadata": {"name": "main"}, "spec": {}}
        mock_get_cached.return_value = cached

        result = get_custom_object_with_cache(mock_api, "CloudflareCredentials", "cloudflarecredentials", "main")

        assert result == cached
        mock_api.get_cluster_custom_object.assert_not_called()
        mock_metrics.api_call_total.labels.assert_called_with(
            api_type="k8s", operation="get_cloudflarecredentials", result="cache_hit"
        )

    @patch("cloudflare_operator.handlers.shared.metrics")
    def test_from_api_then_cache(self, mock_metrics):
        """Test that the first read hits the API and the second the cache."""
        mock_api = Mock()
        obj = {"metadata": {"name": "main"}, "spec": {}}
        mock_api.get_cluster_custom_object.return_value = obj

        first = get_custom_object_with_cache(mock_api, "CloudflareCredentials", "cloudflarecredentials", "main")
        second = get_custom_object_with_cache(mock_api, "CloudflareCredentials", "cloudflarecredentials", "main")

        assert first == second == obj
        mock_api.get_cluster_custom_object.assert_called_once_with(
            group="networking.cloudflare-operator.io",
            version="v1alpha2",
            plural="cloudflarecredentials",
            name="main",
        )

    @patch("cloudflare_operator.handlers.shared.handle_rate_limit_error")
    @patch("cloudflare_operator.handlers.shared.metrics")
    def test_retries_rate_limited_read(self, mock_metrics, mock_handle_rate_limit):
        """Test that a rate limited read is retried."""
        mock_api = Mock()
        obj = {"metadata": {"name": "logs"}}
        mock_api.get_namespaced_custom_object.side_effect = [client.exceptions.ApiException(status=429), obj]
        mock_handle_rate_limit.return_value = True

        result = get_custom_object_with_cache(mock_api, "R2Bucket", "r2buckets", "logs", "default")

        assert result == obj
        assert mock_api.get_namespaced_custom_object.call_count == 2

    @patch("cloudflare_operator.handlers.shared.metrics")
    def test_api_error(self, mock_metrics):
        """Test that other API errors propagate."""
        mock_api = Mock()
        mock_api.get_namespaced_custom_object.side_effect = client.exceptions.ApiException(status=404)

        with pytest.raises(client.exceptions.ApiException):
            get_custom_object_with_cache(mock_api, "R2Bucket", "r2buckets", "logs", "default")

        mock_metrics.api_call_total.labels.assert_called_with(api_type="k8s", operation="get_r2buckets", result="error")


class TestListAndGeneration:
    """Test cases for list_custom_objects and get_live_generation."""

    def test_list_cluster_scoped(self):
        """Test listing a cluster scoped kind."""
        mock_api = Mock()
        mock_api.list_cluster_custom_object.return_value = {"items": [{"metadata": {"name": "a"}}]}

        assert list_custom_objects(mock_api, "cloudflaredomains") == [{"metadata": {"name": "a"}}]

    def test_list_namespaced(self):
        """Test listing a namespaced kind."""
        mock_api = Mock()
        mock_api.list_namespaced_custom_object.return_value = {}

        assert list_custom_objects(mock_api, "r2buckets", "default") == []
        assert mock_api.list_namespaced_custom_object.call_args[1]["namespace"] == "default"

    def test_live_generation(self):
        """Test reading the current generation."""
        mock_api = Mock()
        mock_api.get_namespaced_custom_object.return_value = {"metadata": {"generation": 7}}

        assert get_live_generation(mock_api, "r2buckets", "logs", "default") == 7

    def test_live_generation_gone(self):
        """Test that a deleted object has no generation."""
        mock_api = Mock()
        mock_api.get_namespaced_custom_object.side_effect = client.exceptions.ApiException(status=404)

        assert get_live_generation(mock_api, "r2buckets", "logs", "default") is None


class TestBucketLookup:
    """Test cases for locating R2Bucket dependencies."""

    def test_find_by_spec_name(self):
        """Test that spec.name takes precedence over the resource name."""
        mock_api = Mock()
        mock_api.list_namespaced_custom_object.return_value = {
            "items": [_bucket("logs"), _bucket("assets", remote_name="prod-assets")]
        }

        assert find_r2_bucket(mock_api, "default", "prod-assets")["metadata"]["name"] == "assets"
        assert find_r2_bucket(mock_api, "default", "logs")["metadata"]["name"] == "logs"
        assert find_r2_bucket(mock_api, "default", "assets") is None

    def test_require_ready_bucket_missing(self):
        """Test that a missing bucket is a dependency error."""
        mock_api = Mock()
        mock_api.list_namespaced_custom_object.return_value = {"items": []}

        with pytest.raises(DependencyNotReady, match="not found"):
            require_ready_bucket(mock_api, "default", "logs")

    def test_require_ready_bucket_not_ready(self):
        """Test that a bucket still creating is a dependency error."""
        mock_api = Mock()
        mock_api.list_namespaced_custom_object.return_value = {"items": [_bucket("logs", state="Creating")]}

        with pytest.raises(DependencyNotReady, match="Creating"):
            require_ready_bucket(mock_api, "default", "logs")

    def test_require_ready_bucket_ready(self):
        """Test that a Ready bucket is returned."""
        mock_api = Mock()
        obj = _bucket("logs", state="Ready")
        mock_api.list_namespaced_custom_object.return_value = {"items": [obj]}

        assert require_ready_bucket(mock_api, "default", "logs") == obj


class TestGetK8sClient:
    """Test cases for get_k8s_client function."""

    @patch("cloudflare_operator.handlers.shared.client.CustomObjectsApi")
    @patch("kubernetes.config.load_incluster_config")
    def test_get_k8s_client_incluster(self, mock_load_incluster, mock_api):
        """Test getting K8s client with incluster config."""
        result = get_k8s_client()

        assert result == mock_api.return_value
        mock_load_incluster.assert_called_once()

    @patch("cloudflare_operator.handlers.shared.client.CustomObjectsApi")
    @patch("kubernetes.config.load_kube_config")
    @patch("kubernetes.config.load_incluster_config")
    def test_get_k8s_client_kubeconfig(self, mock_load_incluster, mock_load_kube, mock_api):
        """Test getting K8s client with kubeconfig fallback."""
        from kubernetes.config import ConfigException

        mock_load_incluster.side_effect = ConfigException("Not in cluster")

        result = get_k8s_client()

        assert result == mock_api.return_value
        mock_load_kube.assert_called_once()
