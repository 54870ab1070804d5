"""Money helpers for legacy billing parity.

Amounts are handled as ``Decimal`` dollars. Every intermediate figure is
rounded half-up to whole cents, matching the amounts already stored by the
point-of-sale system.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

# ─── constants ───────────────────────────────────────────────────────────────

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str]


# ─── helpers ─────────────────────────────────────────────────────────────────


def to_decimal(value: Number | None) -> Decimal:
    """Coerce a number (or numeric string) to Decimal. Floats go through str."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(str(value))


def round2(value: Number | None) -> Decimal:
    """Round half-up to 2 decimal places. 2.675 → 2.68."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(value: Number | None) -> str:
    """Render an amount as a fixed 2-dp string, e.g. ``"19.00"``."""
    return f"{round2(value):.2f}"
