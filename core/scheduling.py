"""
Appointment time-range rules and derived display values.

Pure functions: nothing here reads the clock or touches the store. Callers
pass "now" explicitly (as_of) so results are reproducible in tests.
"""

from datetime import date, datetime
from typing import NamedTuple
from uuid import UUID

from dateutil.relativedelta import relativedelta

from core.exceptions import EndNotAfterStartError

NO_VALUE = "—"


def validate_interval(start: datetime, end: datetime) -> None:
    """
    Enforce that an appointment ends strictly after it starts.

    Must be called before persisting a create, a manual edit, a drag
    (both ends shifted) or a resize (one end shifted).

    Raises:
        EndNotAfterStartError: If end <= start
    """
    if end <= start:
        raise EndNotAfterStartError(start, end)


class Duration(NamedTuple):
    """Elapsed time split into whole hours and remaining minutes."""

    hours: int
    minutes: int

    @property
    def total_minutes(self) -> int:
        return self.hours * 60 + self.minutes

    @property
    def label(self) -> str:
        """'45 mins' under an hour, otherwise '2h' or '1h 30m'."""
        if self.hours == 0:
            return f"{self.minutes} mins"
        if self.minutes == 0:
            return f"{self.hours}h"
        return f"{self.hours}h {self.minutes}m"


def duration(start: datetime, end: datetime) -> Duration:
    """
    Decompose the time between start and end.

    Partial minutes are dropped.

    Raises:
        EndNotAfterStartError: If end is before start
    """
    if end < start:
        raise EndNotAfterStartError(start, end)

    total_minutes = int((end - start).total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    return Duration(hours=hours, minutes=minutes)


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def compute_age(date_of_birth: date | None, as_of: date) -> str:
    """
    Human age from a date of birth.

    Args:
        date_of_birth: Birth date, or None if unknown
        as_of: Reference date (usually today)

    Returns:
        "—" when unknown, "N year(s)" from one whole year on,
        otherwise "N month(s)".
    """
    if date_of_birth is None:
        return NO_VALUE

    if isinstance(date_of_birth, datetime):
        date_of_birth = date_of_birth.date()
    if isinstance(as_of, datetime):
        as_of = as_of.date()

    if date_of_birth > as_of:
        return _plural(0, "month")

    delta = relativedelta(as_of, date_of_birth)
    if delta.years >= 1:
        return _plural(delta.years, "year")
    return _plural(delta.months, "month")


def reference_number(
    prefix: str,
    sequence_number: int | None,
    fallback_id: UUID | str,
    created_at: datetime | date,
    fallback_length: int = 4
) -> str:
    """
    Human-readable reference shown in place of a raw row id.

    With a sequence number: PREFIX-YEAR-007 (year of created_at).
    Without one: PREFIX-A1B2, a short uppercased slice of the id.
    """
    if sequence_number is not None:
        return f"{prefix}-{created_at.year}-{sequence_number:03d}"

    short_id = str(fallback_id).replace("-", "")[:fallback_length].upper()
    return f"{prefix}-{short_id}"
