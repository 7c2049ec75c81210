"""Fixed-point conversions between display amounts and smallest units.

All conversions go through ``Decimal``; floats never touch an amount.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_DOWN, localcontext
from typing import Any, Optional

ETHER_DECIMALS = 18

# uint256 amounts need ~78 significant digits
_PRECISION = 120
_MAX_UINT256 = 2 ** 256 - 1


def to_decimal(raw: Any) -> Optional[Decimal]:
    """Parse ``raw`` as a finite Decimal, or ``None`` when it is not a number."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not value.is_finite():
        return None
    return value


def to_base_units(amount: Any, decimals: int) -> int:
    """
    Convert a display amount (``"1.5"``) to an integer of smallest units.

    Digits beyond ``decimals`` are truncated. Raises ``ValueError`` for
    anything that is not a finite, non-negative number that fits in a uint256.
    """
    value = to_decimal(amount)
    if value is None:
        raise ValueError(f"Invalid amount: {amount!r}")
    if value < 0:
        raise ValueError(f"Amount must not be negative: {amount!r}")
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        try:
            scaled = (value * (Decimal(10) ** decimals)).quantize(Decimal('1'), rounding=ROUND_DOWN)
        except InvalidOperation:
            raise ValueError(f"Amount out of range: {amount!r}") from None
    if scaled > _MAX_UINT256:
        raise ValueError(f"Amount out of range: {amount!r}")
    return int(scaled)


def from_base_units(raw: int, decimals: int) -> str:
    """Render an integer of smallest units as a plain decimal string."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        value = Decimal(int(raw)).scaleb(-decimals)
        text = format(value, 'f')
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text or '0'


def parse_ether(amount: Any) -> int:
    return to_base_units(amount, ETHER_DECIMALS)


def format_ether(wei: int) -> str:
    return from_base_units(wei, ETHER_DECIMALS)


def parse_quantity(raw: Any) -> int:
    """Decode a JSON-RPC quantity (``"0x1a"``) or plain integer string."""
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        text = raw.strip()
        if text.lower().startswith('0x'):
            return int(text, 16) if len(text) > 2 else 0
        return int(text)
    raise ValueError(f"Not a quantity: {raw!r}")


__all__ = [
    'ETHER_DECIMALS',
    'to_decimal',
    'to_base_units',
    'from_base_units',
    'parse_ether',
    'format_ether',
    'parse_quantity',
]
