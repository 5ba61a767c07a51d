"""Tests for Prometheus metrics."""

from __future__ import annotations

from cloudflare_operator.metrics import (
    api_call_duration_seconds,
    api_call_total,
    cloudflare_operations_total,
    deletion_attempts_total,
    drift_detected_total,
    error_total,
    rate_limit_hits_total,
    reconcile_duration_seconds,
    reconcile_total,
    resource_status_total,
    zone_resolution_total,
)


class TestMetricsExist:
    """Test that all expected metrics are defined."""

    def test_counter_names(self):
        """Test counter names; prometheus strips the _total suffix from _name."""
        assert reconcile_total._name == "cloudflare_operator_reconcile"
        assert error_total._name == "cloudflare_operator_error"
        assert resource_status_total._name == "cloudflare_operator_resource_status"
        assert cloudflare_operations_total._name == "cloudflare_operator_cloudflare_operations"
        assert drift_detected_total._name == "cloudflare_operator_drift_detected"
        assert zone_resolution_total._name == "cloudflare_operator_zone_resolution"
        assert deletion_attempts_total._name == "cloudflare_operator_deletion_attempts"
        assert api_call_total._name == "cloudflare_operator_api_call"
        assert rate_limit_hits_total._name == "cloudflare_operator_rate_limit_hits"

    def test_histogram_names(self):
        """Test histogram names."""
        assert reconcile_duration_seconds._name == "cloudflare_operator_reconcile_duration_seconds"
        assert api_call_duration_seconds._name == "cloudflare_operator_api_call_duration_seconds"


class TestMetricLabels:
    """Test that metrics accept the labels the operator uses."""

    def test_reconcile_labels(self):
        """Test reconcile_total and error_total labels."""
        reconcile_total.labels(kind="R2Bucket", result="requeued").inc(0)
        error_total.labels(kind="R2BucketDomain", error_type="DependencyNotReady").inc(0)
        resource_status_total.labels(kind="CloudflareDomain", status="Verifying").inc(0)

    def test_cloudflare_labels(self):
        """Test Cloudflare operation and drift labels."""
        cloudflare_operations_total.labels(kind="R2Bucket", operation="put_bucket_cors", result="success").inc(0)
        drift_detected_total.labels(kind="R2Bucket", resource_type="cors").inc(0)
        deletion_attempts_total.labels(kind="R2Bucket", result="orphaned").inc(0)
        zone_resolution_total.labels(result="default").inc(0)

    def test_api_call_labels(self):
        """Test api_call_total and api_call_duration_seconds labels."""
        api_call_total.labels(api_type="cloudflare", operation="get_bucket", result="success").inc(0)
        api_call_duration_seconds.labels(api_type="k8s", operation="get_r2buckets").observe(0.05)
        rate_limit_hits_total.labels(api_type="cloudflare").inc(0)


class TestMetricOperations:
    """Test metric operations."""

    def test_counter_increment(self):
        """Test that counters can be incremented."""
        counter = reconcile_total.labels(kind="TestCounter", result="test")
        initial = counter._value.get()

        counter.inc()

        assert counter._value.get() == initial + 1

    def test_different_label_values_independent(self):
        """Test that metrics with different labels are independent."""
        first = cloudflare_operations_total.labels(kind="TestKind", operation="op1", result="success")
        second = cloudflare_operations_total.labels(kind="TestKind", operation="op2", result="success")
        first_initial, second_initial = first._value.get(), second._value.get()

        first.inc(3)
        second.inc(5)

        assert first._value.get() == first_initial + 3
        assert second._value.get() == second_initial + 5
