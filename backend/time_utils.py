"""Day arithmetic for day-scoped record identity.

Every record identity that involves a day is computed from the caller's
wall clock. A supplied date always wins; the server clock is consulted only
when the caller sent no date at all, and only through the two ``*_now``
helpers below so the fallback stays in one place.
"""
import re
from datetime import date as date_type
from datetime import datetime, time

from errors import ValidationError

DAY_FORMAT = "%Y-%m-%d"
_HHMM = re.compile(r"^([01][0-9]|2[0-3]):[0-5][0-9]$")


def server_now() -> datetime:
    """Server local wall-clock time, used when a caller supplies no date."""
    return datetime.now()


def server_today() -> str:
    return server_now().strftime(DAY_FORMAT)


def parse_day(value: str, field: str = "date") -> str:
    """Validate a YYYY-MM-DD string and return it normalized."""
    try:
        return datetime.strptime(value.strip(), DAY_FORMAT).strftime(DAY_FORMAT)
    except (AttributeError, ValueError) as e:
        raise ValidationError(f"Invalid {field} format. Use YYYY-MM-DD") from e


def parse_effective_datetime(value: str | None) -> datetime:
    """Resolve the effective datetime of a submission.

    Accepts a bare day (midnight of that day) or an ISO datetime. Offsets are
    dropped and the wall clock kept, since the caller's local calendar day is
    what identifies the record.
    """
    if value is None or not str(value).strip():
        return server_now()

    raw = str(value).strip()
    if len(raw) == 10:
        return datetime.combine(datetime.strptime(parse_day(raw), DAY_FORMAT).date(), time.min)

    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValidationError("Invalid date format. Use YYYY-MM-DD or an ISO datetime") from e
    return parsed.replace(tzinfo=None)


def day_key(moment: datetime | date_type) -> str:
    return moment.strftime(DAY_FORMAT)


def resolve_day(value: str | None) -> str:
    """Documentation day for a card field: caller's day, else today."""
    if value is None or not str(value).strip():
        return server_today()
    return parse_day(str(value))


def validate_hhmm(value: str) -> str:
    value = value.strip()
    if not _HHMM.match(value):
        raise ValidationError("eventTime must be in HH:MM format")
    return value
