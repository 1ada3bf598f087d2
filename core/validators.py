"""
Input validation functions for API parameters.

All validators raise ValidationError on invalid input.
"""

import re
from typing import Optional

from core.exceptions import ValidationError
from core.models import PaymentType, Period

# Maximum allowed values
MAX_USER_ID_LENGTH = 128
MAX_QUERY_LENGTH = 500
# Money columns are DECIMAL(14, 2); keep every stored amount well inside them
MAX_AMOUNT = 1_000_000_000
MAX_QUANTITY = 1_000_000


def validate_period(
    value: Optional[str],
    field: str = "period",
    default: Optional[str] = Period.LAST_30_DAYS.value,
) -> str:
    """
    Validate a snapshot period.

    Args:
        value: Period string to validate
        field: Field name for error messages
        default: Returned when value is empty (None makes the period required)

    Returns:
        Validated period string

    Raises:
        ValidationError: If period is not one of the known periods
    """
    if value is None or value == "":
        if default is not None:
            return default
        raise ValidationError(field, "Period is required")

    if not isinstance(value, str):
        raise ValidationError(field, "Must be a string", value)

    value = value.strip()

    if value not in Period.values():
        raise ValidationError(
            field,
            f"Must be one of: {', '.join(Period.values())}",
            value
        )

    return value


def validate_user_id(value: Optional[str], field: str = "user_id") -> str:
    """
    Validate a tenant identifier.

    Returns:
        Stripped user id

    Raises:
        ValidationError: If missing, too long or containing unsupported characters
    """
    if value is None or not str(value).strip():
        raise ValidationError(field, "User id is required")

    value = str(value).strip()

    if len(value) > MAX_USER_ID_LENGTH:
        raise ValidationError(
            field,
            f"Cannot exceed {MAX_USER_ID_LENGTH} characters",
            f"{len(value)} characters"
        )

    if not re.match(r"^[\w\-\.:@]+$", value):
        raise ValidationError(field, "Contains invalid characters", value)

    return value


def validate_query(value: Optional[str], field: str = "query") -> str:
    """Validate a chatbot question (non-blank, bounded length)."""
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(field, "Query is required")

    if len(value) > MAX_QUERY_LENGTH:
        raise ValidationError(
            field,
            f"Cannot exceed {MAX_QUERY_LENGTH} characters",
            f"{len(value)} characters"
        )

    return value.strip()


def validate_amount(value, field: str = "amount", allow_zero: bool = False) -> float:
    """
    Validate a monetary amount.

    Raises:
        ValidationError: If not a finite non-negative number within range
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(field, "Must be a number", value)

    if value != value:  # NaN
        raise ValidationError(field, "Must be a number", value)

    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError(
            field,
            "Must be zero or greater" if allow_zero else "Must be greater than zero",
            value
        )

    if value > MAX_AMOUNT:
        raise ValidationError(field, f"Cannot exceed {MAX_AMOUNT}", value)

    return float(value)


def validate_payment_type(value: Optional[str], field: str = "payment_type") -> PaymentType:
    """Validate a payment direction (Received / Paid)."""
    if value is None or value == "":
        raise ValidationError(field, "Payment type is required")

    try:
        return PaymentType(value)
    except ValueError:
        raise ValidationError(
            field,
            f"Must be one of: {', '.join(t.value for t in PaymentType)}",
            value
        )
