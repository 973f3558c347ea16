"""
Field validation for operator input.

Every function takes the raw value the operator typed (or a Python value
from a caller) and returns the cleaned value, or raises ValidationError
naming the field. Nothing here touches the store, so these run before any
write and are what the terminal loops on when it re-prompts.
"""

from datetime import date, datetime
from typing import Any

from shop.errors import ValidationError


# Length bounds per field: (min, max)
CUSTOMER_LIMITS = {
    "fname": (1, 32),
    "lname": (1, 32),
    "phone": (1, 13),
    "address": (1, 256),
}
MECHANIC_LIMITS = {
    "fname": (1, 32),
    "lname": (1, 32),
}
CAR_LIMITS = {
    "vin": (1, 17),
    "make": (1, 32),
    "model": (1, 32),
}

# Accepted date spellings; the first is what the prompt asks for
DATE_FORMATS = ("%m/%d/%Y", "%Y-%m-%d")

# Stored request dates carry a time component; intake dates pin it here
TIME_SENTINEL = "00:00"


def require_text(field: str, value: Any, min_len: int = 1, max_len: int | None = None) -> str:
    """Trimmed string with a length between min_len and max_len."""
    if value is None:
        raise ValidationError(field, "is required")
    text = str(value).strip()
    if len(text) < min_len:
        if min_len <= 1:
            raise ValidationError(field, "must not be empty")
        raise ValidationError(field, f"must be at least {min_len} characters")
    if max_len is not None and len(text) > max_len:
        raise ValidationError(field, f"must be at most {max_len} characters (got {len(text)})")
    return text


def require_int(field: str, value: Any, minimum: int | None = None) -> int:
    """Parse an integer, optionally bounded below."""
    if isinstance(value, bool):
        raise ValidationError(field, "must be an integer")
    if isinstance(value, int):
        number = value
    else:
        try:
            number = int(str(value).strip())
        except (TypeError, ValueError):
            raise ValidationError(field, f"must be an integer (got {value!r})") from None
    if minimum is not None and number < minimum:
        raise ValidationError(field, f"must be at least {minimum}")
    return number


def require_positive_int(field: str, value: Any) -> int:
    """Parse an integer greater than zero."""
    number = require_int(field, value)
    if number <= 0:
        raise ValidationError(field, "must be greater than 0")
    return number


def require_year(value: Any) -> str:
    """Model year: exactly four digits."""
    text = "" if value is None else str(value).strip()
    if len(text) != 4 or not text.isdigit():
        raise ValidationError("year", f"must be exactly 4 digits (got {text!r})")
    return text


def require_service_date(value: Any) -> str:
    """Parse an intake date and normalize it to 'YYYY-MM-DD 00:00'."""
    if isinstance(value, datetime):
        parsed = value.date()
    elif isinstance(value, date):
        parsed = value
    else:
        text = "" if value is None else str(value).strip()
        parsed = None
        for fmt in DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt).date()
                break
            except ValueError:
                continue
        if parsed is None:
            raise ValidationError("date", f"must be a date as mm/dd/yyyy (got {text!r})")
    return f"{parsed.isoformat()} {TIME_SENTINEL}"


def _check_limits(fields: dict[str, Any], limits: dict[str, tuple[int, int]]) -> dict[str, str]:
    cleaned = {}
    for name, (low, high) in limits.items():
        cleaned[name] = require_text(name, fields.get(name), low, high)
    return cleaned


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------

def parse_customer_id(value: Any) -> int:
    return require_int("id", value)


def parse_mechanic_id(value: Any) -> int:
    return require_int("id", value)


def parse_vin(value: Any) -> str:
    low, high = CAR_LIMITS["vin"]
    return require_text("vin", value, low, high)


# ---------------------------------------------------------------------------
# Whole records
# ---------------------------------------------------------------------------

def validate_customer(fields: dict[str, Any]) -> dict[str, Any]:
    """Check fname, lname, phone and address."""
    return _check_limits(fields, CUSTOMER_LIMITS)


def validate_mechanic(fields: dict[str, Any]) -> dict[str, Any]:
    """Check fname, lname and a non-negative experience in years."""
    cleaned: dict[str, Any] = _check_limits(fields, MECHANIC_LIMITS)
    cleaned["experience"] = require_int("experience", fields.get("experience"), minimum=0)
    return cleaned


def validate_car(fields: dict[str, Any]) -> dict[str, Any]:
    """Check make, model and year. The VIN is validated as the key."""
    limits = {k: v for k, v in CAR_LIMITS.items() if k != "vin"}
    cleaned: dict[str, Any] = _check_limits(fields, limits)
    cleaned["year"] = require_year(fields.get("year"))
    return cleaned


def validate_request_fields(odometer: Any, service_date: Any, complaint: Any) -> tuple[int, str, str]:
    """Odometer, intake date and complaint for a service request.

    Every field is checked before returning so a failure never leaves a
    half-applied request behind.
    """
    reading = require_int("odometer", odometer, minimum=0)
    when = require_service_date(service_date)
    text = require_text("complaint", complaint)
    return reading, when, text
