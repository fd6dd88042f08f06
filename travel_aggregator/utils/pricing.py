"""Price parsing utilities.

Upstream APIs report prices as numbers, numeric strings, or display
strings such as ``"$1,234"``. These helpers turn all of them into a
canonical ``Price`` or ``None`` when no usable amount is present.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from travel_aggregator.schemas import Price

_NON_NUMERIC = re.compile(r"[^\d.]")


def to_decimal(amount: Any) -> Optional[Decimal]:
    """Parse an amount into a non-negative Decimal.

    Args:
        amount: Number, numeric string, or display string with currency symbols.

    Returns:
        The parsed amount, or None if missing, unparseable, or negative.
    """
    if amount is None or isinstance(amount, bool):
        return None
    if isinstance(amount, Decimal):
        value = amount
    elif isinstance(amount, (int, float)):
        value = Decimal(str(amount))
    else:
        text = str(amount).strip()
        if text.startswith("-"):
            return None
        cleaned = _NON_NUMERIC.sub("", text.replace(",", ""))
        if not cleaned:
            return None
        try:
            value = Decimal(cleaned)
        except InvalidOperation:
            return None

    if not value.is_finite() or value < 0:
        return None
    return value


def to_price(amount: Any, currency: Optional[str] = "USD", base: Any = None) -> Optional[Price]:
    """Build a ``Price`` from a raw amount, or None when the amount is unusable."""
    total = to_decimal(amount)
    if total is None:
        return None
    return Price(
        total=total,
        currency=(currency or "USD").upper(),
        base=to_decimal(base),
    )
