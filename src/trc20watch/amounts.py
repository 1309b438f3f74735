"""Fixed-point conversion of raw token quantities.

Token amounts arrive as integer strings in the token's smallest unit
(e.g. ``"10229460000"`` with 6 decimals is ``10229.46`` USDT). All math is
done on Python integers so no precision is lost for any number of decimals.
"""

from decimal import Decimal
from typing import Optional, Union

DEFAULT_DECIMALS = 6


def to_display_amount(raw_quantity: Optional[Union[str, int]], decimals: int = DEFAULT_DECIMALS) -> str:
    """Convert a raw integer quantity into a decimal string.

    Args:
        raw_quantity: Non-negative integer quantity (string or int).
            ``None`` and ``""`` are treated as zero.
        decimals: Number of decimal places of the token

    Returns:
        Decimal string without trailing zeros, e.g. ``"10229.46"`` or ``"5"``

    Raises:
        ValueError: If the quantity is not a non-negative integer or
            decimals is negative
    """
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")

    text = str(raw_quantity).strip() if raw_quantity not in (None, "") else "0"
    if not text.isdigit():
        raise ValueError(f"Invalid token quantity: {raw_quantity!r}")

    int_part, frac_part = divmod(int(text), 10**decimals)
    if decimals == 0:
        return str(int_part)

    frac = str(frac_part).zfill(decimals).rstrip("0")
    return f"{int_part}.{frac}" if frac else str(int_part)


def to_decimal_amount(raw_quantity: Optional[Union[str, int]], decimals: int = DEFAULT_DECIMALS) -> Decimal:
    """Same as :func:`to_display_amount` but returns a ``Decimal``."""
    return Decimal(to_display_amount(raw_quantity, decimals))
