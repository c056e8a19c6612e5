"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, to_utc, to_local, today_local, month_bounds, parse_iso
from utils.clinic_context import ClinicContext
