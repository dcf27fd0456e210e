"""Append-only record of money movements.

Internal movements (bets, bonuses, penalties, commission) are written and
applied to the wallet in the caller's unit of work and are CONFIRMED straight
away. Deposits and withdrawals go through the payment rail and stay PENDING
until the provider's callback reaches confirm().
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fightbet.core.errors import InvalidStateError, NotFoundError, ForbiddenError
from fightbet.models.transaction import (
    Transaction,
    TransactionType,
    TransactionStatus,
    PaymentProvider,
    EXTERNAL_TYPES,
)
from fightbet.services.ledger import ensure_positive_amount
from fightbet.services.wallet_store import WalletStore

logger = logging.getLogger(__name__)


class TransactionLog:
    def __init__(self, db: AsyncSession, wallets: WalletStore):
        self.db = db
        self.wallets = wallets

    async def _apply_internal(self, user_id: Optional[int], type: TransactionType, amount: int) -> None:
        if type == TransactionType.BET_PLACED or type == TransactionType.PENALTY:
            await self.wallets.debit(user_id, amount)
        elif type == TransactionType.BET_WIN or type == TransactionType.BET_REFUND:
            await self.wallets.credit(user_id, amount)
        elif type == TransactionType.BONUS:
            await self.wallets.credit_bonus(user_id, amount)
        # COMMISSION is bookkeeping only; no wallet carries the house share.

    async def record(
        self,
        user_id: Optional[int],
        type: TransactionType,
        amount: int,
        bet_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Transaction:
        """Write an internal movement and apply it to the wallet. Does not commit.

        Commission rows are the house's: they carry no user and move no wallet.
        """
        if type in EXTERNAL_TYPES:
            raise ValueError(f"{type.value} must go through the payment rail")
        if (user_id is None) != (type == TransactionType.COMMISSION):
            raise ValueError("Only commission rows are recorded without a user")
        ensure_positive_amount(amount)
        await self._apply_internal(user_id, type, amount)
        tx = Transaction(
            user_id=user_id,
            type=type,
            amount=amount,
            status=TransactionStatus.CONFIRMED,
            bet_id=bet_id,
            notes=notes,
            processed_at=datetime.now(timezone.utc),
        )
        self.db.add(tx)
        await self.db.flush()
        logger.info("Transaction %s: %s %s for user %s", tx.id, type.value, amount, user_id)
        return tx

    async def request_deposit(
        self, user_id: int, amount: int, provider: PaymentProvider, phone_number: str
    ) -> Transaction:
        """PENDING deposit; money only moves when the provider confirms. Does not commit."""
        ensure_positive_amount(amount)
        await self.wallets.get(user_id)
        tx = Transaction(
            user_id=user_id,
            type=TransactionType.DEPOSIT,
            amount=amount,
            status=TransactionStatus.PENDING,
            provider=provider,
            phone_number=phone_number,
            notes=f"Deposit via {provider.value}",
        )
        self.db.add(tx)
        await self.db.flush()
        return tx

    async def request_withdrawal(
        self, user_id: int, amount: int, provider: PaymentProvider, phone_number: str
    ) -> Transaction:
        """Lock the funds and write a PENDING withdrawal. Does not commit."""
        ensure_positive_amount(amount)
        await self.wallets.lock(user_id, amount)
        tx = Transaction(
            user_id=user_id,
            type=TransactionType.WITHDRAWAL,
            amount=amount,
            status=TransactionStatus.PENDING,
            provider=provider,
            phone_number=phone_number,
            notes=f"Withdrawal to {provider.value}",
        )
        self.db.add(tx)
        await self.db.flush()
        return tx

    async def _close(self, tx: Transaction, status: TransactionStatus, **values) -> None:
        """Compare-and-set PENDING -> status; a concurrent or repeated close loses."""
        result = await self.db.execute(
            update(Transaction)
            .where(Transaction.id == tx.id, Transaction.status == TransactionStatus.PENDING)
            .values(status=status, processed_at=datetime.now(timezone.utc), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = await self.db.scalar(select(Transaction.status).where(Transaction.id == tx.id))
            raise InvalidStateError(f"Transaction {tx.id} is already {current.value}")

    async def confirm(
        self, transaction_id: int, external_ref: Optional[str], outcome: TransactionStatus
    ) -> Transaction:
        """Apply the payment provider's verdict to a PENDING deposit or withdrawal. Does not commit."""
        if outcome not in (TransactionStatus.CONFIRMED, TransactionStatus.FAILED):
            raise ValueError("outcome must be CONFIRMED or FAILED")
        tx = await self.get(transaction_id)
        if tx.status != TransactionStatus.PENDING:
            raise InvalidStateError(f"Transaction {tx.id} is already {tx.status.value}")
        if tx.type not in EXTERNAL_TYPES:
            raise InvalidStateError(f"{tx.type.value} transactions are confirmed on creation")

        await self._close(tx, outcome, external_ref=external_ref or tx.external_ref)
        if tx.type == TransactionType.DEPOSIT:
            if outcome == TransactionStatus.CONFIRMED:
                await self.wallets.credit(tx.user_id, tx.amount)
        elif outcome == TransactionStatus.CONFIRMED:
            await self.wallets.consume_locked(tx.user_id, tx.amount)
        else:
            await self.wallets.release(tx.user_id, tx.amount)

        logger.info(
            "Transaction %s (%s %s) -> %s ref=%s",
            tx.id, tx.type.value, tx.amount, outcome.value, external_ref,
        )
        return await self.get(transaction_id)

    async def cancel(self, transaction_id: int, user_id: int) -> Transaction:
        """Owner cancels a PENDING deposit or withdrawal. Does not commit."""
        tx = await self.get(transaction_id)
        if tx.user_id != user_id:
            raise ForbiddenError("Not your transaction")
        if tx.type not in EXTERNAL_TYPES or tx.status != TransactionStatus.PENDING:
            raise InvalidStateError("Only pending deposits and withdrawals can be cancelled")
        await self._close(tx, TransactionStatus.CANCELLED)
        if tx.type == TransactionType.WITHDRAWAL:
            await self.wallets.release(tx.user_id, tx.amount)
        return await self.get(transaction_id)

    async def set_external_ref(self, transaction_id: int, external_ref: str) -> None:
        await self.db.execute(
            update(Transaction)
            .where(Transaction.id == transaction_id)
            .values(external_ref=external_ref)
            .execution_options(synchronize_session=False)
        )

    async def get(self, transaction_id: int) -> Transaction:
        tx = await self.db.scalar(
            select(Transaction)
            .where(Transaction.id == transaction_id)
            .execution_options(populate_existing=True)
        )
        if tx is None:
            raise NotFoundError("Transaction not found")
        return tx

    async def list_for_user(
        self,
        user_id: int,
        type: Optional[TransactionType] = None,
        status: Optional[TransactionStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Transaction]:
        query = select(Transaction).where(Transaction.user_id == user_id)
        if type is not None:
            query = query.where(Transaction.type == type)
        if status is not None:
            query = query.where(Transaction.status == status)
        query = query.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(limit).offset(offset)
        return list(await self.db.scalars(query))
