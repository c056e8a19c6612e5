"""
Audit trail for all entity changes.

Every create, update and delete made by a service is logged here. The
audit log is:
- Append-only (entries never modified or deleted)
- User-attributed (who made the change, for which clinic)
- Detailed (captures old and new values)
"""

from enum import Enum
from uuid import UUID, uuid4
from typing import Any

from clients.row_store import RowStore
from utils.clinic_context import ClinicContext
from utils.timezone import now_utc


class AuditAction(Enum):
    """Type of change made to an entity."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Compute changes between two entity states.

    Args:
        old: Previous state of entity
        new: New state of entity
        exclude_fields: Fields to ignore (defaults to {"created_at"})

    Returns:
        Dict of {field: {"old": old_val, "new": new_val}} for changed fields.
        Empty dict if no changes.
    """
    exclude = exclude_fields or {"created_at"}
    changes = {}

    for key in set(old) | set(new):
        if key in exclude:
            continue

        old_val = old.get(key)
        new_val = new.get(key)

        if old_val != new_val:
            changes[key] = {"old": old_val, "new": new_val}

    return changes


class AuditLogger:
    """
    Writes audit_log rows through the row store.

    Always pass model_dump(mode="json") output so UUIDs, dates and Decimals
    are JSON-compatible.

    Usage:
        audit = AuditLogger(store)

        audit.log_change(
            ctx,
            entity_type="owner",
            entity_id=owner.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)}
        )

        changes = compute_changes(
            old.model_dump(mode="json"),
            new.model_dump(mode="json")
        )
        audit.log_change(ctx, "owner", owner.id, AuditAction.UPDATE, changes)

        history = audit.get_entity_history(ctx, "owner", owner.id)
    """

    def __init__(self, store: RowStore):
        self.store = store

    def log_change(
        self,
        ctx: ClinicContext,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        changes: dict[str, Any],
        store: RowStore | None = None
    ) -> None:
        """
        Log an entity change.

        Args:
            ctx: Acting user and clinic
            entity_type: Type of entity ("owner", "invoice", etc.)
            entity_id: ID of the entity
            action: The action performed (CREATE, UPDATE, DELETE)
            changes: The changes made (format depends on action)
            store: Transaction-bound store, so the entry commits or rolls
                back with the change it describes

        Changes format by action:
        - CREATE: {"created": {full entity data}}
        - UPDATE: {"field": {"old": old_val, "new": new_val}, ...}
        - DELETE: {"deleted": {full entity data at deletion}}
        """
        (store or self.store).insert("audit_log", {
            "id": uuid4(),
            "clinic_id": ctx.clinic_id,
            "user_id": ctx.user_id,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "action": action.value,
            "changes": changes,
            "created_at": now_utc(),
        })

    def get_entity_history(
        self,
        ctx: ClinicContext,
        entity_type: str,
        entity_id: UUID
    ) -> list[dict[str, Any]]:
        """
        Get full audit history for an entity, newest first.
        """
        return self.store.select(
            "audit_log",
            {
                "clinic_id": ctx.clinic_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
            },
            order_by="created_at",
            descending=True,
        )

    def get_user_activity(
        self,
        ctx: ClinicContext,
        limit: int = 100
    ) -> list[dict[str, Any]]:
        """
        Get the acting user's recent activity in their clinic, newest first.
        """
        return self.store.select(
            "audit_log",
            {"clinic_id": ctx.clinic_id, "user_id": ctx.user_id},
            order_by="created_at",
            descending=True,
            limit=limit,
        )
