import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from ..errors import ValidationError

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def ensure_positive_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a positive integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a positive integer") from None
    if number <= 0 or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f"{field} must be a positive integer")
    return number


def ensure_email(value: Any) -> str:
    email = str(value or "").strip()
    if not _EMAIL_RE.match(email):
        raise ValidationError("Invalid email")
    return email


def ensure_money(value: Any, field: str) -> Optional[Decimal]:
    """Parse an optional positive amount with at most two decimals."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number") from None
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if amount.as_tuple().exponent < -2:
        raise ValidationError(f"{field} must have at most two decimals")
    return amount
