"""Tests for the audit trail."""

import pytest
from uuid import uuid4


class TestAuditAction:
    """Tests for AuditAction enum."""

    def test_has_create_update_delete(self):
        """AuditAction has required values."""
        from core.audit import AuditAction

        assert AuditAction.CREATE.value == "create"
        assert AuditAction.UPDATE.value == "update"
        assert AuditAction.DELETE.value == "delete"


class TestComputeChanges:
    """Tests for compute_changes utility function."""

    def test_detects_changed_fields(self):
        """Different values for same key detected."""
        from core.audit import compute_changes

        old = {"first_name": "Jane", "email": "jane@old.test"}
        new = {"first_name": "Jane", "email": "jane@new.test"}

        changes = compute_changes(old, new)

        assert changes == {"email": {"old": "jane@old.test", "new": "jane@new.test"}}

    def test_detects_added_and_removed_fields(self):
        from core.audit import compute_changes

        changes = compute_changes({"phone": "555"}, {"room": "2"})

        assert changes["phone"] == {"old": "555", "new": None}
        assert changes["room"] == {"old": None, "new": "2"}

    def test_ignores_created_at_by_default(self):
        from core.audit import compute_changes

        changes = compute_changes({"created_at": "a"}, {"created_at": "b"})

        assert changes == {}

    def test_custom_exclusions(self):
        from core.audit import compute_changes

        changes = compute_changes(
            {"status": "draft", "total": "1"},
            {"status": "sent", "total": "2"},
            exclude_fields={"total"},
        )

        assert set(changes) == {"status"}


class TestAuditLogger:
    """Tests for AuditLogger against the in-memory store."""

    def test_log_change_stamps_clinic_and_user(self, ctx, store, audit):
        from core.audit import AuditAction

        entity_id = uuid4()
        audit.log_change(ctx, "owner", entity_id, AuditAction.CREATE, {"created": {"first_name": "Jane"}})

        rows = store.rows("audit_log")
        assert len(rows) == 1
        assert rows[0]["clinic_id"] == ctx.clinic_id
        assert rows[0]["user_id"] == ctx.user_id
        assert rows[0]["entity_id"] == entity_id
        assert rows[0]["action"] == "create"
        assert rows[0]["changes"] == {"created": {"first_name": "Jane"}}

    def test_history_scoped_to_clinic(self, ctx, ctx_b, audit):
        from core.audit import AuditAction

        entity_id = uuid4()
        audit.log_change(ctx, "owner", entity_id, AuditAction.CREATE, {})
        audit.log_change(ctx_b, "owner", entity_id, AuditAction.UPDATE, {})

        history = audit.get_entity_history(ctx, "owner", entity_id)

        assert [entry["action"] for entry in history] == ["create"]

    def test_user_activity_respects_limit(self, ctx, audit):
        from core.audit import AuditAction

        for _ in range(3):
            audit.log_change(ctx, "pet", uuid4(), AuditAction.CREATE, {})

        assert len(audit.get_user_activity(ctx, limit=2)) == 2

    def test_log_change_uses_given_store(self, ctx, audit):
        """A transaction-bound store receives the entry instead of the default one."""
        from unittest.mock import Mock
        from core.audit import AuditAction

        tx = Mock()
        audit.log_change(ctx, "invoice", uuid4(), AuditAction.DELETE, {}, store=tx)

        tx.insert.assert_called_once()
        assert tx.insert.call_args.args[0] == "audit_log"
