"""Unit tests for condition utilities."""

from __future__ import annotations

from cloudflare_operator.utils.conditions import (
    get_condition,
    is_condition_true,
    remove_condition,
    set_credentials_resolved_condition,
    set_deletion_blocked_condition,
    set_dependency_ready_condition,
    set_ready_condition,
    set_zone_resolved_condition,
    update_condition,
)


class TestConditions:
    """Test condition utilities."""

    def test_update_condition_new(self) -> None:
        """Test adding a new condition."""
        result = update_condition([], "Synced", "True", "Reconciled", "In sync", observed_generation=1)

        assert len(result) == 1
        assert result[0]["type"] == "Synced"
        assert result[0]["status"] == "True"
        assert result[0]["reason"] == "Reconciled"
        assert result[0]["message"] == "In sync"
        assert result[0]["observedGeneration"] == 1

    def test_update_condition_existing(self) -> None:
        """Test updating an existing condition replaces it."""
        conditions = [
            {
                "type": "Synced",
                "status": "False",
                "reason": "OldReason",
                "message": "Old message",
                "lastTransitionTime": "2023-01-01T00:00:00Z",
            }
        ]

        result = update_condition(conditions, "Synced", "True", "NewReason", "New message", observed_generation=2)

        assert len(result) == 1
        assert result[0]["status"] == "True"
        assert result[0]["reason"] == "NewReason"
        assert result[0]["lastTransitionTime"] != "2023-01-01T00:00:00Z"

    def test_update_condition_keeps_transition_time(self) -> None:
        """Test that an unchanged status keeps its transition time."""
        conditions = [{"type": "Ready", "status": "True", "lastTransitionTime": "2023-01-01T00:00:00Z"}]

        result = update_condition(conditions, "Ready", "True", "Ready", "still ready")

        assert result[0]["lastTransitionTime"] == "2023-01-01T00:00:00Z"

    def test_update_condition_does_not_mutate_input(self) -> None:
        """Test that the input list is left untouched."""
        conditions = [{"type": "Ready", "status": "False"}]

        update_condition(conditions, "Ready", "True", "Ready", "ok")

        assert conditions == [{"type": "Ready", "status": "False"}]

    def test_one_entry_per_type(self) -> None:
        """Test that repeated writes never duplicate a type."""
        conditions: list = []
        for status in (True, False, True):
            conditions = set_ready_condition(conditions, status, "msg")
            conditions = set_zone_resolved_condition(conditions, status, "msg")

        assert sorted(c["type"] for c in conditions) == ["Ready", "ZoneResolved"]

    def test_remove_and_get_condition(self) -> None:
        """Test removing and reading conditions."""
        conditions = set_ready_condition([], True, "ok")
        conditions = update_condition(conditions, "DefaultConflict", "True", "MultipleDefaults", "conflict")

        assert is_condition_true(conditions, "DefaultConflict")
        conditions = remove_condition(conditions, "DefaultConflict")
        assert get_condition(conditions, "DefaultConflict") is None
        assert is_condition_true(conditions, "Ready")


class TestConditionSetters:
    """Test the typed condition setters."""

    def test_set_ready_condition(self) -> None:
        """Test setting ready condition."""
        result = set_ready_condition([], True, "Ready", observed_generation=1)

        assert result[0]["type"] == "Ready"
        assert result[0]["status"] == "True"
        assert result[0]["reason"] == "Ready"

    def test_set_ready_condition_custom_reason(self) -> None:
        """Test that an explicit reason overrides the default."""
        result = set_ready_condition([], False, "waiting", reason="Progressing")

        assert result[0]["status"] == "False"
        assert result[0]["reason"] == "Progressing"

    def test_set_credentials_resolved_condition(self) -> None:
        """Test setting credentials resolved condition."""
        result = set_credentials_resolved_condition([], False, "missing", observed_generation=3)

        assert result[0]["type"] == "CredentialsResolved"
        assert result[0]["reason"] == "CredentialsNotFound"
        assert result[0]["observedGeneration"] == 3

    def test_set_zone_resolved_condition_reason(self) -> None:
        """Test zone resolved condition with a manual zone reason."""
        result = set_zone_resolved_condition([], True, "Using zone", reason="Manual")

        assert result[0]["type"] == "ZoneResolved"
        assert result[0]["reason"] == "Manual"

    def test_set_dependency_ready_condition(self) -> None:
        """Test setting dependency ready condition."""
        result = set_dependency_ready_condition([], False, "R2Bucket logs is Creating")

        assert result[0]["type"] == "DependencyReady"
        assert result[0]["reason"] == "DependencyNotReady"

    def test_set_deletion_blocked_condition(self) -> None:
        """Test setting deletion blocked condition."""
        result = set_deletion_blocked_condition([], "Failed to delete")

        assert result[0]["type"] == "DeletionBlocked"
        assert result[0]["status"] == "True"
        assert result[0]["reason"] == "DeletionRetriesExhausted"
