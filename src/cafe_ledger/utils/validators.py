"""
Input validation functions for ledger operations.

Validators return (is_valid, error_message) tuples so callers can collect
several problems before raising a single ValidationError.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional, Tuple

from .constants import (
    CURRENCY_QUANTUM,
    ERROR_INVALID_NON_NEGATIVE,
    ERROR_INVALID_NUMBER,
    ERROR_INVALID_PERCENTAGE,
    ERROR_INVALID_POSITIVE,
    ERROR_QUANTITY_TOO_LARGE,
    ERROR_REQUIRED_FIELD,
    MAX_QUANTITY,
    MAX_RETURN_PERCENTAGE,
    MIN_RETURN_PERCENTAGE,
    QUANTITY_QUANTUM,
)


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Convert a number-like value to a finite Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not its binary
    expansion.

    Returns:
        Decimal, or None if the value is missing or not a finite number
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None
    if not result.is_finite():
        return None
    return result


def quantize_quantity(value: Decimal) -> Decimal:
    """Round a quantity to ledger precision (3 places, half-up)."""
    return value.quantize(QUANTITY_QUANTUM, rounding=ROUND_HALF_UP)


def quantize_money(value: Decimal) -> Decimal:
    """Round a money amount to 2 places, half-up."""
    return value.quantize(CURRENCY_QUANTUM, rounding=ROUND_HALF_UP)


def validate_positive_quantity(value: Any, field_name: str = "Quantity") -> Tuple[bool, str]:
    """
    Validate that a quantity is a number greater than zero.

    Args:
        value: Number-like value
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    if value is None:
        return False, f"{field_name}: {ERROR_REQUIRED_FIELD}"
    number = to_decimal(value)
    if number is None:
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
    if number <= 0:
        return False, f"{field_name}: {ERROR_INVALID_POSITIVE}"
    if number > MAX_QUANTITY:
        return False, f"{field_name}: {ERROR_QUANTITY_TOO_LARGE}"
    return True, ""


def validate_non_negative_quantity(
    value: Any, field_name: str = "Quantity"
) -> Tuple[bool, str]:
    """Validate that a quantity is a number greater than or equal to zero."""
    if value is None:
        return False, f"{field_name}: {ERROR_REQUIRED_FIELD}"
    number = to_decimal(value)
    if number is None:
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
    if number < 0:
        return False, f"{field_name}: {ERROR_INVALID_NON_NEGATIVE}"
    if number > MAX_QUANTITY:
        return False, f"{field_name}: {ERROR_QUANTITY_TOO_LARGE}"
    return True, ""


def validate_return_percentage(
    value: Any, field_name: str = "Return percentage"
) -> Tuple[bool, str]:
    """Validate that a return percentage lies in [0, 100]."""
    if value is None:
        return False, f"{field_name}: {ERROR_REQUIRED_FIELD}"
    number = to_decimal(value)
    if number is None:
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
    if number < MIN_RETURN_PERCENTAGE or number > MAX_RETURN_PERCENTAGE:
        return False, f"{field_name}: {ERROR_INVALID_PERCENTAGE}"
    return True, ""


def validate_required_string(value: Optional[str], field_name: str = "Field") -> Tuple[bool, str]:
    """Validate that a string field is not empty."""
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return False, f"{field_name}: {ERROR_REQUIRED_FIELD}"
    return True, ""
