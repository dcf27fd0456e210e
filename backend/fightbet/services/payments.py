import logging
import uuid
from typing import Protocol

import httpx

from fightbet.config import Settings
from fightbet.models.transaction import Transaction

logger = logging.getLogger(__name__)


class PaymentProvider(Protocol):
    async def initiate_deposit(self, tx: Transaction) -> dict: ...

    async def initiate_withdrawal(self, tx: Transaction) -> dict: ...


class HttpPaymentProvider:
    """
    Mobile-money aggregator API (Wave / Orange Money / Free Money).
    Returns: {"success": bool, "external_ref": str, "checkout_url": str, "message": str}
    The final verdict arrives later on the webhook.
    """

    def __init__(self, base_url: str, api_key: str, timeout: float = 15.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    async def _post(self, path: str, payload: dict) -> dict:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                f"{self.base_url}{path}",
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            resp.raise_for_status()
            return resp.json()

    async def _initiate(self, path: str, tx: Transaction) -> dict:
        payload = {
            "client_reference": str(tx.id),
            "provider": tx.provider.value,
            "amount": tx.amount,
            "currency": "XOF",
            "phone_number": tx.phone_number,
        }
        try:
            data = await self._post(path, payload)
            if not isinstance(data, dict):
                raise ValueError(f"unexpected response body: {data!r}")
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Payment API error for transaction %s: %s", tx.id, e)
            return {"success": False, "message": f"Payment provider unavailable: {e}"}
        return {
            "success": bool(data.get("success", True)),
            "external_ref": data.get("id") or data.get("reference"),
            "checkout_url": data.get("checkout_url"),
            "message": data.get("message", ""),
        }

    async def initiate_deposit(self, tx: Transaction) -> dict:
        return await self._initiate("/checkout/sessions", tx)

    async def initiate_withdrawal(self, tx: Transaction) -> dict:
        return await self._initiate("/payouts", tx)


class MockPaymentProvider:
    """Accepts everything; confirmation is driven by calling the webhook by hand."""

    async def initiate_deposit(self, tx: Transaction) -> dict:
        ref = f"MOCK-DEP-{uuid.uuid4().hex[:12].upper()}"
        return {
            "success": True,
            "external_ref": ref,
            "checkout_url": f"https://pay.mock.local/checkout/{ref}",
            "message": "Mock checkout created",
        }

    async def initiate_withdrawal(self, tx: Transaction) -> dict:
        ref = f"MOCK-WDR-{uuid.uuid4().hex[:12].upper()}"
        return {"success": True, "external_ref": ref, "checkout_url": None, "message": "Mock payout queued"}


def build_payment_provider(settings: Settings) -> PaymentProvider:
    if settings.PAYMENT_PROVIDER_MODE == "http":
        return HttpPaymentProvider(settings.PAYMENT_API_BASE_URL, settings.PAYMENT_API_KEY)
    return MockPaymentProvider()
