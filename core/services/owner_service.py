"""
Owner service for CRUD operations.

Handles the owner (clinic client) lifecycle: create, read, update, delete.
Every operation is scoped to the caller's clinic.
"""

import logging
from uuid import UUID, uuid4

from clients.row_store import RowStore
from core.audit import AuditLogger, AuditAction, compute_changes
from core.exceptions import InvalidInputError, NotFoundError
from core.models import Owner, OwnerCreate, OwnerUpdate
from utils.clinic_context import ClinicContext
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

# Valid columns that can be updated
_UPDATABLE_COLUMNS = {"first_name", "last_name", "email", "phone", "address"}
_REQUIRED_COLUMNS = {"first_name", "last_name"}


class OwnerService:
    """Service for owner operations."""

    def __init__(self, store: RowStore, audit: AuditLogger):
        self.store = store
        self.audit = audit

    def create(self, ctx: ClinicContext, data: OwnerCreate) -> Owner:
        """
        Create a new owner in the caller's clinic.

        Args:
            ctx: Acting user and clinic
            data: Owner creation data

        Returns:
            Created owner
        """
        row = self.store.insert("owners", {
            "id": uuid4(),
            "clinic_id": ctx.clinic_id,
            **data.model_dump(),
            "created_at": now_utc(),
        })

        owner = Owner.model_validate(row)

        self.audit.log_change(
            ctx,
            entity_type="owner",
            entity_id=owner.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)}
        )

        return owner

    def get_by_id(self, ctx: ClinicContext, owner_id: UUID) -> Owner | None:
        """
        Get owner by ID.

        Returns:
            Owner if found in the caller's clinic, None otherwise.
        """
        row = self.store.first("owners", {"id": owner_id, "clinic_id": ctx.clinic_id})

        if row is None:
            return None

        return Owner.model_validate(row)

    def update(self, ctx: ClinicContext, owner_id: UUID, data: OwnerUpdate) -> Owner:
        """
        Update owner fields.

        Args:
            ctx: Acting user and clinic
            owner_id: Owner UUID
            data: Fields to update. Fields left out are unchanged; contact
                fields sent as None (or blank) are cleared.

        Returns:
            Updated owner

        Raises:
            NotFoundError: If owner not found
            InvalidInputError: If a name is sent as None
        """
        current = self.get_by_id(ctx, owner_id)
        if current is None:
            raise NotFoundError("owner", owner_id)

        updates = data.model_dump(exclude_unset=True)
        if not updates:
            return current

        for field in updates:
            if field not in _UPDATABLE_COLUMNS:
                logger.warning(
                    f"Attempted to update unknown field '{field}' on owner {owner_id}"
                )

        valid_updates = {k: v for k, v in updates.items() if k in _UPDATABLE_COLUMNS}
        if not valid_updates:
            return current

        for field in sorted(_REQUIRED_COLUMNS & valid_updates.keys()):
            if valid_updates[field] is None:
                raise InvalidInputError(field, "cannot be cleared")

        row = self.store.update(
            "owners", {"id": owner_id, "clinic_id": ctx.clinic_id}, valid_updates
        )[0]

        updated = Owner.model_validate(row)

        changes = compute_changes(
            current.model_dump(mode="json"),
            updated.model_dump(mode="json")
        )
        if changes:
            self.audit.log_change(
                ctx,
                entity_type="owner",
                entity_id=owner_id,
                action=AuditAction.UPDATE,
                changes=changes
            )

        return updated

    def delete(self, ctx: ClinicContext, owner_id: UUID) -> bool:
        """
        Delete an owner. The database cascades to their pets, appointments
        and invoices.

        Returns:
            True if deleted, False if not found
        """
        current = self.get_by_id(ctx, owner_id)
        if current is None:
            return False

        self.store.delete("owners", {"id": owner_id, "clinic_id": ctx.clinic_id})

        self.audit.log_change(
            ctx,
            entity_type="owner",
            entity_id=owner_id,
            action=AuditAction.DELETE,
            changes={"deleted": current.model_dump(mode="json")}
        )

        return True

    def list_all(self, ctx: ClinicContext, limit: int = 50) -> list[Owner]:
        """
        List owners in the caller's clinic, ordered by last name.
        """
        rows = self.store.select(
            "owners", {"clinic_id": ctx.clinic_id}, order_by="last_name", limit=limit
        )

        return [Owner.model_validate(row) for row in rows]

    def search(self, ctx: ClinicContext, query: str, limit: int = 20) -> list[Owner]:
        """
        Search owners by name or email.

        Case-insensitive partial match, ordered by last name.

        Args:
            ctx: Acting user and clinic
            query: Search string
            limit: Maximum results

        Returns:
            Matching owners
        """
        needle = query.strip().lower()
        rows = self.store.select(
            "owners", {"clinic_id": ctx.clinic_id}, order_by="last_name"
        )

        matches = []
        for row in rows:
            haystack = " ".join(
                row.get(field) or "" for field in ("first_name", "last_name", "email")
            ).lower()
            if needle in haystack:
                matches.append(Owner.model_validate(row))
                if len(matches) >= limit:
                    break

        return matches

    def count(self, ctx: ClinicContext) -> int:
        """Number of owners in the caller's clinic."""
        return len(self.store.select("owners", {"clinic_id": ctx.clinic_id}))
