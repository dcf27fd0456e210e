"""Deposit and withdrawal flows across the transaction log and the payment rail."""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from fightbet.database import atomic
from fightbet.models.transaction import Transaction, TransactionStatus, TransactionType, PaymentProvider as Rail
from fightbet.services.events import EventDispatcher
from fightbet.services.notifications import NotificationService
from fightbet.services.payments import PaymentProvider
from fightbet.services.transaction_log import TransactionLog
from fightbet.services.wallet_store import WalletStore

logger = logging.getLogger(__name__)


def transaction_dict(tx: Transaction) -> dict:
    return {
        "id": tx.id,
        "type": tx.type.value,
        "amount": tx.amount,
        "status": tx.status.value,
        "provider": tx.provider.value if tx.provider else None,
        "external_ref": tx.external_ref,
        "bet_id": tx.bet_id,
        "notes": tx.notes,
        "created_at": tx.created_at.isoformat() if tx.created_at else None,
        "processed_at": tx.processed_at.isoformat() if tx.processed_at else None,
    }


def wallet_dict(wallet) -> dict:
    return {
        "balance": wallet.balance,
        "bonus_balance": wallet.bonus_balance,
        "locked_balance": wallet.locked_balance,
        "updated_at": wallet.updated_at.isoformat() if wallet.updated_at else None,
    }


class Cashier:
    def __init__(
        self,
        db: AsyncSession,
        wallets: WalletStore,
        ledger: TransactionLog,
        provider: PaymentProvider,
        notifications: NotificationService,
        events: EventDispatcher,
    ):
        self.db = db
        self.wallets = wallets
        self.ledger = ledger
        self.provider = provider
        self.notifications = notifications
        self.events = events

    async def deposit(self, user_id: int, amount: int, provider: Rail, phone_number: str) -> dict:
        async with atomic(self.db):
            tx = await self.ledger.request_deposit(user_id, amount, provider, phone_number)
        result = await self.provider.initiate_deposit(tx)
        if not result.get("success"):
            async with atomic(self.db):
                tx = await self.ledger.confirm(tx.id, None, TransactionStatus.FAILED)
            logger.warning("Deposit %s rejected by provider: %s", tx.id, result.get("message"))
            return {"transaction": transaction_dict(tx), "message": result.get("message")}

        async with atomic(self.db):
            await self.ledger.set_external_ref(tx.id, result["external_ref"])
        tx = await self.ledger.get(tx.id)
        return {
            "transaction": transaction_dict(tx),
            "checkout_url": result.get("checkout_url"),
            "message": result.get("message"),
        }

    async def withdraw(self, user_id: int, amount: int, provider: Rail, phone_number: str) -> dict:
        # Funds leave the spendable balance before the provider is even called.
        async with atomic(self.db):
            tx = await self.ledger.request_withdrawal(user_id, amount, provider, phone_number)
        await self._push_wallet(user_id)

        result = await self.provider.initiate_withdrawal(tx)
        if not result.get("success"):
            async with atomic(self.db):
                tx = await self.ledger.confirm(tx.id, None, TransactionStatus.FAILED)
            await self._push_wallet(user_id)
            logger.warning("Withdrawal %s rejected by provider: %s", tx.id, result.get("message"))
            return {"transaction": transaction_dict(tx), "message": result.get("message")}

        async with atomic(self.db):
            await self.ledger.set_external_ref(tx.id, result["external_ref"])
        tx = await self.ledger.get(tx.id)
        return {"transaction": transaction_dict(tx), "message": result.get("message")}

    async def confirm(self, transaction_id: int, external_ref: Optional[str], outcome: TransactionStatus) -> Transaction:
        """Provider verdict (webhook or admin). Redelivery raises InvalidStateError and moves nothing."""
        async with atomic(self.db):
            tx = await self.ledger.confirm(transaction_id, external_ref, outcome)
        await self._push_wallet(tx.user_id)

        kind = "Deposit" if tx.type == TransactionType.DEPOSIT else "Withdrawal"
        if outcome == TransactionStatus.CONFIRMED:
            await self.notifications.notify(
                tx.user_id, f"{tx.type.value}_CONFIRMED", f"{kind} confirmed",
                f"{kind} of {tx.amount} FCFA confirmed.",
            )
        else:
            await self.notifications.notify(
                tx.user_id, f"{tx.type.value}_FAILED", f"{kind} failed",
                f"{kind} of {tx.amount} FCFA failed."
                + (" The amount is back in your balance." if tx.type == TransactionType.WITHDRAWAL else ""),
            )
        return tx

    async def cancel(self, transaction_id: int, user_id: int) -> Transaction:
        async with atomic(self.db):
            tx = await self.ledger.cancel(transaction_id, user_id)
        await self._push_wallet(user_id)
        return tx

    async def adjust(self, user_id: int, type: TransactionType, amount: int, notes: Optional[str] = None) -> Transaction:
        """Admin BONUS or PENALTY."""
        async with atomic(self.db):
            tx = await self.ledger.record(user_id, type, amount, notes=notes)
        await self._push_wallet(user_id)
        return tx

    async def _push_wallet(self, user_id: int) -> None:
        wallet = await self.wallets.get(user_id)
        await self.events.to_user(user_id, "wallet:update", wallet_dict(wallet))
