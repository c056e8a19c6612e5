"""Explicit per-request identity passed into every service call."""

from uuid import UUID

from pydantic import BaseModel


class ClinicContext(BaseModel):
    """
    Who is acting, and for which clinic.

    Resolved once per request from the authenticated user
    (see IdentityService.context_for_user) and handed to services as their
    first argument. Services stamp clinic_id on every row they write and
    filter every read by it; clinic ids are never taken from request data.

    Example:
        ctx = identity.context_for_user(user_id)
        appointment_service.create(ctx, data)
    """

    user_id: UUID
    clinic_id: UUID

    model_config = {"frozen": True}
