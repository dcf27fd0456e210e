"""Explicit request validators.

Each validator returns a ValidationResult instead of raising, so the request
boundary decides how to surface field errors.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from fightbet.config import Settings
from fightbet.core.errors import ValidationError
from fightbet.models.fight import Corner
from fightbet.models.transaction import PaymentProvider


@dataclass
class ValidationResult:
    ok: bool
    value: Any = None
    errors: list = field(default_factory=list)

    @classmethod
    def success(cls, value: Any) -> "ValidationResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, errors: list) -> "ValidationResult":
        return cls(ok=False, errors=errors)

    def unwrap(self) -> Any:
        """Return the value or raise the collected field errors."""
        if not self.ok:
            raise ValidationError("Invalid request", errors=self.errors)
        return self.value


def _error(field_name: str, message: str) -> dict:
    return {"field": field_name, "message": message}


def _check_amount(errors: list, amount: Any, low: int, high: int, field_name: str = "amount") -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        errors.append(_error(field_name, "must be an integer number of minor units"))
    elif amount < low:
        errors.append(_error(field_name, f"must be at least {low}"))
    elif amount > high:
        errors.append(_error(field_name, f"must be at most {high}"))


def validate_bet_request(data: dict, settings: Settings) -> ValidationResult:
    errors: list = []
    _check_amount(errors, data.get("amount"), settings.MIN_BET_AMOUNT, settings.MAX_BET_AMOUNT)
    chosen = data.get("chosen_fighter")
    try:
        chosen = Corner(chosen)
    except ValueError:
        errors.append(_error("chosen_fighter", "must be 'A' or 'B'"))
    if not isinstance(data.get("fight_id"), int):
        errors.append(_error("fight_id", "is required"))
    if errors:
        return ValidationResult.failure(errors)
    return ValidationResult.success({**data, "chosen_fighter": chosen})


def validate_payment_request(data: dict, kind: str, settings: Settings) -> ValidationResult:
    """kind is "deposit" or "withdrawal"; limits come from the provider's configuration."""
    errors: list = []
    try:
        provider = PaymentProvider(data.get("provider"))
    except ValueError:
        return ValidationResult.failure(
            [_error("provider", "must be one of " + ", ".join(p.value for p in PaymentProvider))]
        )
    limits = settings.payment_limits(provider.value)
    _check_amount(errors, data.get("amount"), limits[f"{kind}_min"], limits[f"{kind}_max"])
    phone = (data.get("phone_number") or "").replace(" ", "")
    if not phone.lstrip("+").isdigit() or not 7 <= len(phone.lstrip("+")) <= 15:
        errors.append(_error("phone_number", "must be a valid phone number"))
    if errors:
        return ValidationResult.failure(errors)
    return ValidationResult.success({**data, "provider": provider, "phone_number": phone})


def validate_fight_request(data: dict, partial: bool = False) -> ValidationResult:
    errors: list = []
    if not partial or "fighter_a_id" in data or "fighter_b_id" in data:
        a, b = data.get("fighter_a_id"), data.get("fighter_b_id")
        if a is None or b is None:
            errors.append(_error("fighter_b_id", "both fighters are required"))
        elif a == b:
            errors.append(_error("fighter_b_id", "a fighter cannot fight themselves"))
    for key in ("odds_a", "odds_b"):
        if partial and data.get(key) is None:
            continue
        odds = data.get(key)
        if odds is None or odds <= 1:
            errors.append(_error(key, "must be greater than 1.00"))
    scheduled_at: Optional[datetime] = data.get("scheduled_at")
    if scheduled_at is not None and scheduled_at.tzinfo is None:
        errors.append(_error("scheduled_at", "must include a timezone"))
    if errors:
        return ValidationResult.failure(errors)
    return ValidationResult.success(data)
