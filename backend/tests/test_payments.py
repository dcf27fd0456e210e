import json
from types import SimpleNamespace
from unittest.mock import AsyncMock
import httpx
import pytest
from fightbet.config import Settings
from fightbet.core.security import sign_payload, verify_signature
from fightbet.models import PaymentProvider
from fightbet.services.payments import HttpPaymentProvider, MockPaymentProvider, build_payment_provider


def _tx():
    return SimpleNamespace(id=42, provider=PaymentProvider.WAVE, amount=5000, phone_number="771234567")


@pytest.mark.asyncio
async def test_http_provider_maps_checkout_response():
    provider = HttpPaymentProvider("https://pay.example.com/", "key")
    provider._post = AsyncMock(return_value={"id": "chk_1", "checkout_url": "https://pay.example.com/c/1"})

    result = await provider.initiate_deposit(_tx())
    assert result["success"] is True
    assert result["external_ref"] == "chk_1"
    path, payload = provider._post.await_args.args
    assert path == "/checkout/sessions"
    assert payload["client_reference"] == "42"
    assert payload["provider"] == "WAVE"


@pytest.mark.asyncio
async def test_http_provider_reports_transport_errors():
    provider = HttpPaymentProvider("https://pay.example.com", "key")
    provider._post = AsyncMock(side_effect=httpx.ConnectError("down"))

    result = await provider.initiate_withdrawal(_tx())
    assert result["success"] is False
    assert "unavailable" in result["message"]


@pytest.mark.asyncio
async def test_http_provider_reports_unreadable_bodies():
    provider = HttpPaymentProvider("https://pay.example.com", "key")
    provider._post = AsyncMock(side_effect=json.JSONDecodeError("Expecting value", "<html>", 0))
    result = await provider.initiate_withdrawal(_tx())
    assert result["success"] is False

    provider._post = AsyncMock(return_value=["not", "an", "object"])
    result = await provider.initiate_deposit(_tx())
    assert result["success"] is False


@pytest.mark.asyncio
async def test_mock_provider_always_accepts():
    result = await MockPaymentProvider().initiate_withdrawal(_tx())
    assert result["success"] is True
    assert result["external_ref"].startswith("MOCK-WDR-")


def test_provider_selected_from_settings():
    http = Settings(DATABASE_URL="sqlite+aiosqlite://", SECRET_KEY="k", PAYMENT_PROVIDER_MODE="HTTP",
                    PAYMENT_API_BASE_URL="https://pay.example.com")
    assert isinstance(build_payment_provider(http), HttpPaymentProvider)
    mock = Settings(DATABASE_URL="sqlite+aiosqlite://", SECRET_KEY="k", PAYMENT_PROVIDER_MODE="mock")
    assert isinstance(build_payment_provider(mock), MockPaymentProvider)


def test_provider_limits_override_defaults():
    cfg = Settings(DATABASE_URL="sqlite+aiosqlite://", SECRET_KEY="k",
                   PAYMENT_LIMITS={"WAVE": {"deposit_min": 100}})
    assert cfg.payment_limits("WAVE")["deposit_min"] == 100
    assert cfg.payment_limits("WAVE")["withdrawal_max"] == 500_000
    assert cfg.payment_limits("ORANGE_MONEY")["deposit_min"] == 500


def test_webhook_signature():
    body = b'{"transaction_id": 1, "status": "CONFIRMED"}'
    sig = sign_payload(body, "secret")
    assert verify_signature(body, sig, "secret")
    assert not verify_signature(body + b" ", sig, "secret")
    assert not verify_signature(body, None, "secret")


def test_database_url_uses_asyncpg():
    cfg = Settings(DATABASE_URL="postgresql://u:p@db/fightbet", SECRET_KEY="k")
    assert cfg.DATABASE_URL == "postgresql+asyncpg://u:p@db/fightbet"
