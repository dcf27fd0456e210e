"""Wallet balance mutations.

Nothing here commits: every call runs inside the caller's unit of work so the
balance write and its transaction row land (or roll back) together. Decreasing
writes are conditional UPDATEs so the database serialises concurrent debits.
"""
import logging
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fightbet.core.errors import InsufficientFundsError, NotFoundError
from fightbet.models.wallet import Wallet
from fightbet.services.ledger import ensure_positive_amount

logger = logging.getLogger(__name__)


class WalletStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: int) -> Wallet:
        wallet = await self.db.scalar(
            select(Wallet).where(Wallet.user_id == user_id).execution_options(populate_existing=True)
        )
        if wallet is None:
            raise NotFoundError("Wallet not found")
        return wallet

    async def get_balance(self, user_id: int) -> int:
        balance = await self.db.scalar(select(Wallet.balance).where(Wallet.user_id == user_id))
        if balance is None:
            raise NotFoundError("Wallet not found")
        return balance

    async def _apply(self, user_id: int, guard, **values) -> None:
        stmt = update(Wallet).where(Wallet.user_id == user_id)
        if guard is not None:
            stmt = stmt.where(guard)
        result = await self.db.execute(stmt.values(**values).execution_options(synchronize_session=False))
        if result.rowcount == 1:
            return
        exists = await self.db.scalar(select(Wallet.id).where(Wallet.user_id == user_id))
        if exists is None:
            raise NotFoundError("Wallet not found")
        raise InsufficientFundsError()

    async def credit(self, user_id: int, amount: int) -> None:
        ensure_positive_amount(amount)
        await self._apply(user_id, None, balance=Wallet.balance + amount)

    async def debit(self, user_id: int, amount: int) -> None:
        ensure_positive_amount(amount)
        await self._apply(user_id, Wallet.balance >= amount, balance=Wallet.balance - amount)

    async def credit_bonus(self, user_id: int, amount: int) -> None:
        ensure_positive_amount(amount)
        await self._apply(user_id, None, bonus_balance=Wallet.bonus_balance + amount)

    async def lock(self, user_id: int, amount: int) -> None:
        """Move funds from balance to locked_balance (pending withdrawal)."""
        ensure_positive_amount(amount)
        await self._apply(
            user_id,
            Wallet.balance >= amount,
            balance=Wallet.balance - amount,
            locked_balance=Wallet.locked_balance + amount,
        )

    async def release(self, user_id: int, amount: int) -> None:
        """Return locked funds to the spendable balance."""
        ensure_positive_amount(amount)
        await self._apply(
            user_id,
            Wallet.locked_balance >= amount,
            balance=Wallet.balance + amount,
            locked_balance=Wallet.locked_balance - amount,
        )

    async def consume_locked(self, user_id: int, amount: int) -> None:
        """Remove locked funds for good once the payout left the platform."""
        ensure_positive_amount(amount)
        await self._apply(user_id, Wallet.locked_balance >= amount, locked_balance=Wallet.locked_balance - amount)
