"""Typed exceptions for clinic domain failures."""


class ClinicError(Exception):
    """Base class for clinic domain errors."""


class InvalidInputError(ClinicError, ValueError):
    """
    A value is outside its domain (negative price, zero quantity, ...).

    Surfaced as a field-level validation message. Never clamped.
    """

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


class IntervalError(ClinicError, ValueError):
    """Appointment time range is invalid. Raised before any write."""


class EndNotAfterStartError(IntervalError):
    """End time is not strictly after start time."""

    def __init__(self, start, end):
        self.start = start
        self.end = end
        super().__init__("End time must be after start time")


class PersistenceError(ClinicError):
    """Row store operation failed (network, constraint violation, ...)."""


class NotFoundError(PersistenceError):
    """
    Row does not exist or belongs to another clinic.

    Both cases produce the same error so foreign rows are indistinguishable
    from missing ones.
    """

    def __init__(self, entity_type: str, entity_id):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type.replace('_', ' ').capitalize()} {entity_id} not found")


class EmailError(ClinicError):
    """Outbound email could not be sent. Invoice status is left unchanged."""


class ClinicNotResolvedError(ClinicError):
    """Authenticated user has no profile, so no clinic can be stamped on writes."""
