from decimal import Decimal
import pytest
from fightbet.core.errors import ValidationError
from fightbet.services.ledger import payout_for, commission_for, ensure_positive_amount, to_decimal


def test_payout_is_amount_times_odds():
    assert payout_for(1000, Decimal("2.50")) == 2500
    assert payout_for(1000, "1.85") == 1850


def test_payout_floors_fractional_units():
    # 333 * 1.55 = 516.15
    assert payout_for(333, Decimal("1.55")) == 516


def test_commission_is_floored_ten_percent():
    assert commission_for(2500, 0.10) == 250
    assert commission_for(1855, Decimal("0.10")) == 185
    assert commission_for(0, 0.10) == 0


def test_float_rate_keeps_printed_value():
    assert to_decimal(0.1) == Decimal("0.1")


@pytest.mark.parametrize("amount", [0, -5, 1.5, "100", True, None])
def test_non_positive_or_non_integer_amounts_are_rejected(amount):
    with pytest.raises(ValidationError):
        ensure_positive_amount(amount)
