# hms_core/common/money.py
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from rest_framework.exceptions import ValidationError

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
RUPEE = Decimal("1")


def to_decimal(value, field: str = "amount", *, default: Decimal | None = None) -> Decimal:
    if value is None or value == "":
        if default is not None:
            return default
        raise ValidationError({field: "This field is required."})
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError({field: "Invalid decimal value."})


def round_rupees(value) -> Decimal:
    """Whole rupees, .5 rounds up (kept at 2 decimal places for storage)."""
    return Decimal(str(value)).quantize(RUPEE, rounding=ROUND_HALF_UP).quantize(CENT)


def q2(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
