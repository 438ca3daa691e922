"""
Module: retail_kernel.db.types
Responsibility: Annotated type aliases and rounding helpers for stock and
    money columns.  Centralizes precision so that every model and service
    uses identical type definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats for money or cost.  All amounts use Decimal with explicit
      precision; quantities are integers.
    - round_money() and round_cost() are the only sanctioned rounding
      functions.  Both round half-up.

Failure modes:
    - decimal.InvalidOperation on non-numeric input to to_decimal().
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import BigInteger, Numeric, String

# Monetary amount: 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Signed stock quantity (units)
Quantity = Annotated[int, BigInteger]

# Short identifier strings (document numbers, codes, enum values)
ShortCode = Annotated[str, String(50)]

# Free-text columns
LongText = Annotated[str, String(4000)]

MONEY_DECIMAL_PLACES = 2
COST_DECIMAL_PLACES = 6
DEFAULT_ROUNDING = ROUND_HALF_UP


def to_decimal(value: Decimal | int | str) -> Decimal:
    """Coerce an int/str/Decimal to Decimal.  Floats are refused."""
    if isinstance(value, float):
        raise TypeError("float amounts are not accepted; pass Decimal or str")
    return value if isinstance(value, Decimal) else Decimal(value)


def _quantize(value: Decimal, decimal_places: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-decimal_places), rounding=DEFAULT_ROUNDING)


def round_money(value: Decimal, decimal_places: int = MONEY_DECIMAL_PLACES) -> Decimal:
    """Round a monetary amount (document totals, payments)."""
    return _quantize(value, decimal_places)


def round_cost(value: Decimal, decimal_places: int = COST_DECIMAL_PLACES) -> Decimal:
    """Round a unit cost (ledger average cost)."""
    return _quantize(value, decimal_places)
