"""
Pet service for CRUD operations.

A pet always belongs to exactly one owner in the same clinic.
"""

import logging
from uuid import UUID, uuid4

from clients.row_store import RowStore
from core.audit import AuditLogger, AuditAction, compute_changes
from core.exceptions import InvalidInputError, NotFoundError
from core.models import Pet, PetCreate, PetUpdate
from utils.clinic_context import ClinicContext
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

# Valid columns that can be updated
_UPDATABLE_COLUMNS = {
    "owner_id", "name", "species", "breed",
    "date_of_birth", "sex", "weight_kg", "notes"
}

_REQUIRED_COLUMNS = {"owner_id", "name", "species"}


class PetService:
    """Service for pet operations."""

    def __init__(self, store: RowStore, audit: AuditLogger):
        self.store = store
        self.audit = audit

    def _require_owner(self, ctx: ClinicContext, owner_id: UUID) -> None:
        if self.store.first("owners", {"id": owner_id, "clinic_id": ctx.clinic_id}) is None:
            raise NotFoundError("owner", owner_id)

    def create(self, ctx: ClinicContext, data: PetCreate) -> Pet:
        """
        Create a new pet.

        Args:
            ctx: Acting user and clinic
            data: Pet creation data

        Returns:
            Created pet

        Raises:
            NotFoundError: If the owner is not in the caller's clinic
        """
        self._require_owner(ctx, data.owner_id)

        row = self.store.insert("pets", {
            "id": uuid4(),
            "clinic_id": ctx.clinic_id,
            **data.model_dump(),
            "created_at": now_utc(),
        })

        pet = Pet.model_validate(row)

        self.audit.log_change(
            ctx,
            entity_type="pet",
            entity_id=pet.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)}
        )

        return pet

    def get_by_id(self, ctx: ClinicContext, pet_id: UUID) -> Pet | None:
        row = self.store.first("pets", {"id": pet_id, "clinic_id": ctx.clinic_id})

        if row is None:
            return None

        return Pet.model_validate(row)

    def update(self, ctx: ClinicContext, pet_id: UUID, data: PetUpdate) -> Pet:
        """
        Update pet fields. Moving a pet to another owner requires that
        owner to be in the same clinic.

        Raises:
            NotFoundError: If pet or new owner not found
            InvalidInputError: If owner, name or species is sent as None
        """
        current = self.get_by_id(ctx, pet_id)
        if current is None:
            raise NotFoundError("pet", pet_id)

        updates = data.model_dump(exclude_unset=True)
        if not updates:
            return current

        for field in updates:
            if field not in _UPDATABLE_COLUMNS:
                logger.warning(
                    f"Attempted to update unknown field '{field}' on pet {pet_id}"
                )

        valid_updates = {k: v for k, v in updates.items() if k in _UPDATABLE_COLUMNS}
        if not valid_updates:
            return current

        for field in sorted(_REQUIRED_COLUMNS & valid_updates.keys()):
            if valid_updates[field] is None:
                raise InvalidInputError(field, "cannot be cleared")

        if "owner_id" in valid_updates and valid_updates["owner_id"] != current.owner_id:
            self._require_owner(ctx, valid_updates["owner_id"])

        row = self.store.update(
            "pets", {"id": pet_id, "clinic_id": ctx.clinic_id}, valid_updates
        )[0]

        updated = Pet.model_validate(row)

        changes = compute_changes(
            current.model_dump(mode="json"),
            updated.model_dump(mode="json")
        )
        if changes:
            self.audit.log_change(
                ctx,
                entity_type="pet",
                entity_id=pet_id,
                action=AuditAction.UPDATE,
                changes=changes
            )

        return updated

    def delete(self, ctx: ClinicContext, pet_id: UUID) -> bool:
        """
        Delete a pet.

        Returns:
            True if deleted, False if not found
        """
        current = self.get_by_id(ctx, pet_id)
        if current is None:
            return False

        self.store.delete("pets", {"id": pet_id, "clinic_id": ctx.clinic_id})

        self.audit.log_change(
            ctx,
            entity_type="pet",
            entity_id=pet_id,
            action=AuditAction.DELETE,
            changes={"deleted": current.model_dump(mode="json")}
        )

        return True

    def list_for_owner(self, ctx: ClinicContext, owner_id: UUID) -> list[Pet]:
        """Pets of one owner, ordered by name."""
        rows = self.store.select(
            "pets",
            {"clinic_id": ctx.clinic_id, "owner_id": owner_id},
            order_by="name"
        )

        return [Pet.model_validate(row) for row in rows]

    def list_all(self, ctx: ClinicContext, limit: int = 50) -> list[Pet]:
        """All pets in the caller's clinic, ordered by name."""
        rows = self.store.select(
            "pets", {"clinic_id": ctx.clinic_id}, order_by="name", limit=limit
        )

        return [Pet.model_validate(row) for row in rows]

    def count(self, ctx: ClinicContext) -> int:
        """Number of pets in the caller's clinic."""
        return len(self.store.select("pets", {"clinic_id": ctx.clinic_id}))
