"""Fixed-point money helpers. Amounts are integer minor units; odds and rates are decimals."""
from decimal import Decimal, ROUND_FLOOR
from typing import Union

from fightbet.core.errors import ValidationError

Number = Union[int, float, str, Decimal]


def to_decimal(value: Number) -> Decimal:
    # str() first so floats such as 0.1 keep their printed value
    return value if isinstance(value, Decimal) else Decimal(str(value))


def ensure_positive_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError(
            "Amount must be a positive integer of minor units",
            errors=[{"field": "amount", "message": f"invalid amount {amount!r}"}],
        )
    return amount


def floor_minor_units(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def payout_for(amount: int, odds: Number) -> int:
    """Gross win for a stake: floor(amount * odds)."""
    return floor_minor_units(Decimal(ensure_positive_amount(amount)) * to_decimal(odds))


def commission_for(gross: int, rate: Number) -> int:
    """Platform commission on a gross win: floor(gross * rate)."""
    if gross <= 0:
        return 0
    return floor_minor_units(Decimal(gross) * to_decimal(rate))
