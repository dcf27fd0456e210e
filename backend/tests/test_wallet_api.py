import json
import pytest
from fightbet.config import settings
from fightbet.core.security import sign_payload
from conftest import register_and_login, set_balance


def _signed(payload: dict) -> tuple[bytes, dict]:
    body = json.dumps(payload).encode()
    return body, {"X-Signature": sign_payload(body, settings.PAYMENT_WEBHOOK_SECRET), "Content-Type": "application/json"}


async def _deposit(client, headers, amount=5000):
    r = await client.post("/api/wallet/deposit", headers=headers, json={
        "amount": amount, "provider": "WAVE", "phone_number": "77 123 45 67",
    })
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_deposit_is_pending_until_webhook(client):
    headers = await register_and_login(client, "payer@example.com")
    data = await _deposit(client, headers)
    assert data["transaction"]["status"] == "PENDING"
    assert data["transaction"]["external_ref"].startswith("MOCK-DEP-")
    assert data["checkout_url"]

    r = await client.get("/api/wallet", headers=headers)
    assert r.json()["balance"] == 0

    body, sig = _signed({"transaction_id": data["transaction"]["id"], "external_ref": "WAVE-77", "status": "CONFIRMED"})
    r = await client.post("/api/wallet/webhook", content=body, headers=sig)
    assert r.status_code == 200, r.text
    r = await client.get("/api/wallet", headers=headers)
    assert r.json()["balance"] == 5000


@pytest.mark.asyncio
async def test_webhook_redelivery_is_rejected_without_double_credit(client):
    headers = await register_and_login(client, "payer@example.com")
    data = await _deposit(client, headers)
    body, sig = _signed({"transaction_id": data["transaction"]["id"], "status": "CONFIRMED"})
    assert (await client.post("/api/wallet/webhook", content=body, headers=sig)).status_code == 200

    r = await client.post("/api/wallet/webhook", content=body, headers=sig)
    assert r.status_code == 409, r.text
    r = await client.get("/api/wallet", headers=headers)
    assert r.json()["balance"] == 5000


@pytest.mark.asyncio
async def test_webhook_with_bad_signature_returns_401(client):
    headers = await register_and_login(client, "payer@example.com")
    data = await _deposit(client, headers)
    body = json.dumps({"transaction_id": data["transaction"]["id"], "status": "CONFIRMED"}).encode()
    r = await client.post("/api/wallet/webhook", content=body, headers={"X-Signature": "deadbeef"})
    assert r.status_code == 401
    r = await client.get("/api/wallet", headers=headers)
    assert r.json()["balance"] == 0


@pytest.mark.asyncio
async def test_deposit_below_provider_minimum_returns_400(client):
    headers = await register_and_login(client, "payer@example.com")
    r = await client.post("/api/wallet/deposit", headers=headers, json={
        "amount": 100, "provider": "WAVE", "phone_number": "771234567",
    })
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "amount"


@pytest.mark.asyncio
async def test_unknown_provider_returns_400(client):
    headers = await register_and_login(client, "payer@example.com")
    r = await client.post("/api/wallet/deposit", headers=headers, json={
        "amount": 1000, "provider": "PAYPAL", "phone_number": "771234567",
    })
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "provider"


@pytest.mark.asyncio
async def test_withdrawal_locks_then_failure_releases(client, test_db):
    headers = await register_and_login(client, "cashout@example.com")
    me = (await client.get("/api/auth/me", headers=headers)).json()
    await set_balance(test_db, me["id"], 10_000)

    r = await client.post("/api/wallet/withdraw", headers=headers, json={
        "amount": 4000, "provider": "ORANGE_MONEY", "phone_number": "771234567",
    })
    assert r.status_code == 201, r.text
    tx_id = r.json()["transaction"]["id"]
    wallet = (await client.get("/api/wallet", headers=headers)).json()
    assert (wallet["balance"], wallet["locked_balance"]) == (6000, 4000)

    body, sig = _signed({"transaction_id": tx_id, "status": "FAILED"})
    assert (await client.post("/api/wallet/webhook", content=body, headers=sig)).status_code == 200
    wallet = (await client.get("/api/wallet", headers=headers)).json()
    assert (wallet["balance"], wallet["locked_balance"]) == (10_000, 0)


@pytest.mark.asyncio
async def test_withdrawal_over_balance_returns_400(client):
    headers = await register_and_login(client, "broke@example.com")
    r = await client.post("/api/wallet/withdraw", headers=headers, json={
        "amount": 4000, "provider": "WAVE", "phone_number": "771234567",
    })
    assert r.status_code == 400
    assert r.json()["code"] == "INSUFFICIENT_FUNDS"


@pytest.mark.asyncio
async def test_transactions_are_private(client):
    alice = await register_and_login(client, "alice@example.com")
    bob = await register_and_login(client, "bob@example.com")
    data = await _deposit(client, alice)
    tx_id = data["transaction"]["id"]

    assert (await client.get(f"/api/wallet/transactions/{tx_id}", headers=alice)).status_code == 200
    assert (await client.get(f"/api/wallet/transactions/{tx_id}", headers=bob)).status_code == 404
    r = await client.get("/api/wallet/transactions", headers=bob)
    assert r.json() == []


@pytest.mark.asyncio
async def test_cancel_pending_deposit(client):
    headers = await register_and_login(client, "payer@example.com")
    data = await _deposit(client, headers)
    tx_id = data["transaction"]["id"]
    r = await client.post(f"/api/wallet/transactions/{tx_id}/cancel", headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "CANCELLED"

    body, sig = _signed({"transaction_id": tx_id, "status": "CONFIRMED"})
    assert (await client.post("/api/wallet/webhook", content=body, headers=sig)).status_code == 409
