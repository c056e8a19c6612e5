"""
Identity service: maps an authenticated user to the clinic they work for.

Authentication itself happens upstream; this service only turns a known
user id into the ClinicContext every other service requires.
"""

import logging
from uuid import UUID

from clients.row_store import RowStore
from core.exceptions import ClinicNotResolvedError
from core.models import Clinic, Profile
from utils.clinic_context import ClinicContext

logger = logging.getLogger(__name__)


class IdentityService:
    """Service for resolving staff identity and clinic."""

    def __init__(self, store: RowStore):
        self.store = store

    def get_profile(self, user_id: UUID) -> Profile | None:
        """Staff profile for a user, or None if they have none."""
        row = self.store.first("profiles", {"id": user_id})
        if row is None:
            return None
        return Profile.model_validate(row)

    def context_for_user(self, user_id: UUID) -> ClinicContext:
        """
        Resolve the clinic a user acts for.

        Args:
            user_id: Authenticated user id

        Returns:
            ClinicContext stamped onto every write made for this request

        Raises:
            ClinicNotResolvedError: If the user has no profile
        """
        profile = self.get_profile(user_id)
        if profile is None:
            logger.warning(f"No clinic profile for user {user_id}")
            raise ClinicNotResolvedError(f"User {user_id} is not linked to a clinic")

        return ClinicContext(user_id=user_id, clinic_id=profile.clinic_id)

    def get_clinic(self, ctx: ClinicContext) -> Clinic | None:
        """The caller's clinic row."""
        row = self.store.first("clinics", {"id": ctx.clinic_id})
        if row is None:
            return None
        return Clinic.model_validate(row)

    def list_staff(self, ctx: ClinicContext) -> list[Profile]:
        """Staff of the caller's clinic, ordered by name."""
        rows = self.store.select(
            "profiles", {"clinic_id": ctx.clinic_id}, order_by="full_name"
        )
        return [Profile.model_validate(row) for row in rows]
