from datetime import datetime
from decimal import Decimal
import pytest
from fightbet.config import settings
from fightbet.core.errors import ValidationError
from fightbet.core.logging_config import scrub
from fightbet.core.validation import validate_bet_request, validate_fight_request, validate_payment_request
from fightbet.models import Corner, PaymentProvider


def test_valid_bet_request_normalises_choice():
    result = validate_bet_request({"fight_id": 1, "amount": 100, "chosen_fighter": "B"}, settings)
    assert result.ok
    assert result.value["chosen_fighter"] == Corner.B


def test_failed_result_unwraps_to_validation_error():
    result = validate_bet_request({"fight_id": 1, "amount": 1_000_001, "chosen_fighter": "A"}, settings)
    assert not result.ok
    with pytest.raises(ValidationError) as exc:
        result.unwrap()
    assert exc.value.errors == [{"field": "amount", "message": "must be at most 1000000"}]


def test_withdrawal_limits_differ_from_deposit():
    data = {"amount": 700, "provider": "ORANGE_MONEY", "phone_number": "+221771234567"}
    assert validate_payment_request(data, "deposit", settings).ok
    assert not validate_payment_request(data, "withdrawal", settings).ok


def test_payment_request_normalises_provider_and_phone():
    data = {"amount": 1000, "provider": "WAVE", "phone_number": "77 123 45 67"}
    value = validate_payment_request(data, "deposit", settings).unwrap()
    assert value["provider"] == PaymentProvider.WAVE
    assert value["phone_number"] == "771234567"


def test_bad_phone_is_reported():
    data = {"amount": 1000, "provider": "WAVE", "phone_number": "call me"}
    result = validate_payment_request(data, "deposit", settings)
    assert [e["field"] for e in result.errors] == ["phone_number"]


def test_fight_request_requires_distinct_fighters_and_real_odds():
    result = validate_fight_request({"fighter_a_id": 1, "fighter_b_id": 1, "odds_a": Decimal("1.00"), "odds_b": Decimal("2.00")})
    fields = {e["field"] for e in result.errors}
    assert fields == {"fighter_b_id", "odds_a"}


def test_partial_fight_update_checks_only_given_fields():
    assert validate_fight_request({"title": "Rematch"}, partial=True).ok
    assert not validate_fight_request({"scheduled_at": datetime(2026, 1, 1)}, partial=True).ok


def test_logs_are_scrubbed():
    line = scrub("login failed for awa@example.com from +221771234567 token=abcdef123456")
    assert "awa@example.com" not in line
    assert "771234567" not in line
    assert "abcdef123456" not in line
