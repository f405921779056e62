"""Fixed-point conversions between display amounts and chain smallest units.

Deposits chain two conversions (ADA -> lovelace, SOL -> lamports), so
everything here stays in Decimal/int and never touches float.
"""

from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Union

from venuebridge.errors import ValidationError

# Token decimals
TOKEN_DECIMALS = {
    "ADA": 6,
    "SOL": 9,
}

Number = Union[Decimal, int, str]


def get_decimals(symbol: str) -> int:
    """Get decimals for a token symbol."""
    try:
        return TOKEN_DECIMALS[symbol.upper()]
    except KeyError:
        raise ValidationError(f"Unsupported token: {symbol}")


def to_decimal(value: Number) -> Decimal:
    """Parse an amount into Decimal. Floats are rejected."""
    if isinstance(value, float):
        raise ValidationError("Amounts must be given as Decimal, int or str, not float")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    return amount


def to_smallest_unit(amount: Number, symbol: str) -> int:
    """Convert a display amount to the chain's smallest integer unit.

    Digits beyond the token's precision are truncated, never rounded up.
    """
    decimals = get_decimals(symbol)
    scaled = to_decimal(amount).scaleb(decimals)
    return int(scaled.quantize(Decimal(1), rounding=ROUND_DOWN))


def from_smallest_unit(amount: int, symbol: str) -> Decimal:
    """Convert a smallest-unit integer back to a display amount."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError(f"Smallest-unit amount must be an integer, got {amount!r}")
    return Decimal(amount).scaleb(-get_decimals(symbol))
