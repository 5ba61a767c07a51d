"""Tests for the R2BucketNotification handler."""

from __future__ import annotations

from unittest.mock import MagicMock, Mock, patch

import kopf
import pytest

from cloudflare_operator.errors import CloudflareAPIError
from cloudflare_operator.handlers.bucket_notification import R2BucketNotificationStrategy
from cloudflare_operator.handlers.engine import Reconciler
from cloudflare_operator.services.cloudflare.models import CloudflareQueue
from cloudflare_operator.utils.conditions import get_condition

SPEC = {
    "bucketName": "uploads",
    "queueName": "upload-events",
    "rules": [{"eventTypes": ["object-delete", "object-create"], "prefix": "images/"}],
}
REMOTE_RULES = [{"ruleId": "r-1", "eventType": ["object-create", "object-delete"], "prefix": "images/"}]


@pytest.fixture
def custom_api() -> Mock:
    api = Mock()
    api.list_namespaced_custom_object.return_value = {
        "items": [{"metadata": {"name": "uploads"}, "spec": {}, "status": {"state": "Ready"}}]
    }
    return api


@pytest.fixture
def cf() -> MagicMock:
    api = MagicMock()
    api.account_id = "acc-123"
    api.find_queue.return_value = CloudflareQueue(queue_id="q-1", queue_name="upload-events")
    return api


@pytest.fixture
def reconciler(custom_api, cf, credential_resolver, operator_cfg) -> Reconciler:
    strategy = R2BucketNotificationStrategy(config=operator_cfg, custom_api_factory=lambda: custom_api)
    return Reconciler(strategy, credential_resolver=credential_resolver, client_factory=lambda c: cf, config=operator_cfg)


def _run(reconciler, resource, spec=None, status=None, generation=1):
    body, spec, meta, status = resource("uploads-events", spec=spec or SPEC, status=status, generation=generation)
    patch_obj = kopf.Patch()
    return reconciler.reconcile(body, spec, meta, status, patch_obj), patch_obj


class TestNotificationRules:
    """Test cases for notification rule reconciliation."""

    def test_creates_rules(self, reconciler, resource, cf):
        """Test pushing rules for a new configuration."""
        cf.get_notification_rules.side_effect = [[], REMOTE_RULES]

        outcome, patch_obj = _run(reconciler, resource)

        cf.put_notification_rules.assert_called_once_with(
            "uploads",
            "q-1",
            [{"eventType": ["object-create", "object-delete"], "prefix": "images/"}],
        )
        assert outcome.state == "Active"
        assert patch_obj.status["queueId"] == "q-1"
        assert patch_obj.status["ruleCount"] == 1

    def test_in_sync_rules_are_untouched(self, reconciler, resource, cf):
        """Test that server assigned rule ids and event order do not cause updates."""
        cf.get_notification_rules.return_value = REMOTE_RULES

        outcome, _ = _run(reconciler, resource)

        assert outcome.state == "Active"
        cf.put_notification_rules.assert_not_called()

    def test_empty_rules_delete_configuration(self, reconciler, resource, cf):
        """Test that an empty rule list removes the remote configuration."""
        cf.get_notification_rules.side_effect = [REMOTE_RULES, []]

        outcome, _ = _run(reconciler, resource, spec={**SPEC, "rules": []})

        cf.delete_notification_rules.assert_called_once_with("uploads", "q-1")
        assert outcome.state == "Active"

    def test_missing_queue_is_pending(self, reconciler, resource, cf):
        """Test that a queue that does not exist yet is a pending dependency."""
        cf.find_queue.return_value = None

        outcome, patch_obj = _run(reconciler, resource)

        assert outcome.state == "Pending"
        assert "upload-events" in patch_obj.status["message"]
        assert get_condition(patch_obj.status["conditions"], "DependencyReady")["status"] == "False"

    def test_bucket_not_ready_is_pending(self, reconciler, resource, custom_api, cf):
        """Test that the bucket must be Ready first."""
        custom_api.list_namespaced_custom_object.return_value = {"items": []}

        outcome, _ = _run(reconciler, resource)

        assert outcome.state == "Pending"
        cf.find_queue.assert_not_called()

    def test_delete_without_recorded_queue(self, reconciler, resource, cf):
        """Test that deletion looks the queue up when status has no id."""
        cf.delete_notification_rules.return_value = True
        body, spec, meta, status = resource("uploads-events", spec=SPEC, deleting=True)
        patch_obj = kopf.Patch()

        reconciler.finalize(body, spec, meta, status, patch_obj)

        cf.delete_notification_rules.assert_called_once_with("uploads", "q-1")
        assert patch_obj.metadata["finalizers"] is None

    def test_changed_queue_replaces_rules(self, reconciler, resource, cf):
        """Test that rules on the queue recorded in status are removed before the new queue is configured."""
        cf.find_queue.return_value = CloudflareQueue(queue_id="q-2", queue_name="upload-events")
        cf.get_notification_rules.side_effect = [[], REMOTE_RULES]
        status = {"queueId": "q-1", "bucketName": "uploads", "state": "Active", "observedGeneration": 1}

        outcome, patch_obj = _run(reconciler, resource, status=status, generation=2)

        cf.delete_notification_rules.assert_called_once_with("uploads", "q-1")
        cf.put_notification_rules.assert_called_once()
        assert cf.put_notification_rules.call_args[0][1] == "q-2"
        assert outcome.state == "Active"
        assert patch_obj.status["queueId"] == "q-2"

    def test_failed_cleanup_keeps_old_queue_tracked(self, reconciler, resource, cf):
        """Test that status keeps the old queue id when its rules cannot be removed."""
        cf.find_queue.return_value = CloudflareQueue(queue_id="q-2", queue_name="upload-events")
        cf.get_notification_rules.return_value = []
        cf.delete_notification_rules.side_effect = CloudflareAPIError("internal error", status_code=500)

        outcome, patch_obj = _run(reconciler, resource, status={"queueId": "q-1"}, generation=2)

        assert outcome.state == "Error"
        assert "queueId" not in patch_obj.status
        cf.put_notification_rules.assert_not_called()

    def test_delete_uses_recorded_bucket(self, reconciler, resource, cf):
        """Test that deletion targets the bucket and queue recorded in status."""
        cf.delete_notification_rules.return_value = True
        status = {"queueId": "q-1", "bucketName": "old-uploads"}
        body, spec, meta, status = resource("uploads-events", spec=SPEC, status=status, deleting=True)

        reconciler.finalize(body, spec, meta, status, kopf.Patch())

        cf.delete_notification_rules.assert_called_once_with("old-uploads", "q-1")
        cf.find_queue.assert_not_called()

    @patch("cloudflare_operator.handlers.engine.emit_drift_detected")
    def test_retry_after_error_is_not_drift(self, mock_emit_drift, reconciler, resource, cf):
        """Test that pushing rules after a failed pass on the same generation is not drift."""
        cf.get_notification_rules.side_effect = [[{"ruleId": "r-0", "eventType": ["object-create"]}], REMOTE_RULES]
        status = {"queueId": "q-1", "state": "Error", "observedGeneration": 1}

        outcome, _ = _run(reconciler, resource, status=status)

        cf.put_notification_rules.assert_called_once()
        assert outcome.state == "Active"
        mock_emit_drift.assert_not_called()

    @patch("cloudflare_operator.handlers.engine.emit_drift_detected")
    def test_out_of_band_change_is_drift(self, mock_emit_drift, reconciler, resource, cf):
        """Test that rules changed behind an Active resource are reported as drift."""
        cf.get_notification_rules.side_effect = [[{"ruleId": "r-0", "eventType": ["object-create"]}], REMOTE_RULES]
        status = {"queueId": "q-1", "state": "Active", "observedGeneration": 1}

        _run(reconciler, resource, status=status)

        mock_emit_drift.assert_called_once()
