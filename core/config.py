"""Clinic behaviour configuration (non-secret)."""

from pydantic import BaseModel, Field


class ClinicSettings(BaseModel):
    """
    Display and numbering settings shared by services.

    Secrets (database URL, email gateway credentials) live in Vault; see
    clients.vault_client.
    """

    # Money display
    currency: str = Field(
        default="USD",
        description="ISO 4217 code used when rendering totals",
        min_length=3,
        max_length=3,
    )
    locale: str = Field(
        default="en-US",
        description="Locale for currency separators",
    )

    # Display timezone for reference-number years, ages, and email dates
    timezone: str = Field(
        default="UTC",
        description="IANA timezone name of the clinic",
    )

    # Reference numbers
    appointment_prefix: str = Field(default="AP", min_length=1, max_length=8)
    invoice_prefix: str = Field(default="INV", min_length=1, max_length=8)
    reference_fallback_length: int = Field(
        default=4,
        description="Id characters shown when a row has no sequence number",
        ge=4,
        le=12,
    )

    # Emails
    fallback_clinic_name: str = Field(
        default="CoCo Pet Control",
        description="Sender name used when the clinic row has no name",
    )

    # Listing
    upcoming_appointments_limit: int = Field(default=5, ge=1, le=50)
    default_list_limit: int = Field(default=50, ge=1, le=500)
