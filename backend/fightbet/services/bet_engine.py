"""Bet placement, cancellation and settlement.

Bet lifecycle:
  PENDING   → ACCEPTED (fight starts) | CANCELLED (creator, or fight cancelled)
  ACCEPTED  → WON | LOST | POSTPONED (fight postponed) | CANCELLED (fight cancelled)
  POSTPONED → ACCEPTED (fight rescheduled) | WON | LOST | CANCELLED

Every status change is a compare-and-set UPDATE in the same unit of work as
its wallet movement, so two settlements of one bet can never both pay out.
A fight is swept bet by bet: a failure leaves that bet open for a retry and
the sweep carries on.
"""
import logging
from datetime import timedelta
from typing import Iterable, Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from fightbet.config import Settings
from fightbet.core.errors import (
    ValidationError,
    NotFoundError,
    ForbiddenError,
    InvalidStateError,
)
from fightbet.database import atomic, utcnow, as_utc
from fightbet.models.bet import Bet, BetStatus, OPEN_BET_STATUSES, TERMINAL_BET_STATUSES
from fightbet.models.fight import Fight, FightResult, FightStatus, Corner
from fightbet.models.transaction import TransactionType
from fightbet.services.events import EventDispatcher
from fightbet.services.ledger import payout_for, commission_for
from fightbet.services.notifications import NotificationService
from fightbet.services.transaction_log import TransactionLog

logger = logging.getLogger(__name__)


def as_corner(value, field: str) -> Corner:
    try:
        return Corner(value)
    except ValueError:
        raise ValidationError(
            f"Invalid {field}", errors=[{"field": field, "message": "must be 'A' or 'B'"}]
        )


def bet_dict(bet: Bet) -> dict:
    return {
        "id": bet.id,
        "creator_id": bet.creator_id,
        "fight_id": bet.fight_id,
        "amount": bet.amount,
        "chosen_fighter": bet.chosen_fighter.value,
        "odds": str(bet.odds),
        "potential_win": bet.potential_win,
        "actual_win": bet.actual_win,
        "status": bet.status.value,
        "created_at": bet.created_at.isoformat() if bet.created_at else None,
        "accepted_at": bet.accepted_at.isoformat() if bet.accepted_at else None,
        "settled_at": bet.settled_at.isoformat() if bet.settled_at else None,
        "cancelled_at": bet.cancelled_at.isoformat() if bet.cancelled_at else None,
    }


class BetEngine:
    def __init__(
        self,
        db: AsyncSession,
        ledger: TransactionLog,
        notifications: NotificationService,
        events: EventDispatcher,
        settings: Settings,
    ):
        self.db = db
        self.ledger = ledger
        self.notifications = notifications
        self.events = events
        self.settings = settings

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_bet(self, bet_id: int) -> Bet:
        bet = await self.db.scalar(
            select(Bet).where(Bet.id == bet_id).execution_options(populate_existing=True)
        )
        if bet is None:
            raise NotFoundError("Bet not found")
        return bet

    async def list_bets(
        self,
        user_id: Optional[int] = None,
        fight_id: Optional[int] = None,
        status: Optional[BetStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Bet]:
        query = select(Bet)
        if user_id is not None:
            query = query.where(Bet.creator_id == user_id)
        if fight_id is not None:
            query = query.where(Bet.fight_id == fight_id)
        if status is not None:
            query = query.where(Bet.status == status)
        query = query.order_by(Bet.created_at.desc(), Bet.id.desc()).limit(limit).offset(offset)
        return list(await self.db.scalars(query))

    async def user_stats(self, user_id: int) -> dict:
        rows = await self.db.execute(
            select(Bet.status, func.count(Bet.id), func.sum(Bet.amount), func.sum(Bet.actual_win))
            .where(Bet.creator_id == user_id)
            .group_by(Bet.status)
        )
        counts = {s.value: 0 for s in BetStatus}
        staked = won_amount = settled_stake = 0
        for status, count, amount, actual in rows:
            counts[status.value] = count
            if status != BetStatus.CANCELLED:
                staked += amount or 0
            if status in (BetStatus.WON, BetStatus.LOST):
                settled_stake += amount or 0
                won_amount += actual or 0
        settled = counts[BetStatus.WON.value] + counts[BetStatus.LOST.value]
        return {
            "total_bets": sum(counts.values()),
            "by_status": counts,
            "total_staked": staked,
            "total_won": won_amount,
            "net_result": won_amount - settled_stake,
            "win_rate": round(counts[BetStatus.WON.value] / settled * 100, 2) if settled else 0.0,
        }

    # ------------------------------------------------------------------
    # Placement / cancellation
    # ------------------------------------------------------------------

    async def place_bet(self, creator_id: int, fight_id: int, amount: int, chosen_fighter) -> Bet:
        low, high = self.settings.MIN_BET_AMOUNT, self.settings.MAX_BET_AMOUNT
        if isinstance(amount, bool) or not isinstance(amount, int) or not low <= amount <= high:
            raise ValidationError(
                "Bet amount out of bounds",
                errors=[{"field": "amount", "message": f"must be between {low} and {high}"}],
            )
        chosen = as_corner(chosen_fighter, "chosen_fighter")

        async with atomic(self.db):
            fight = await self.db.get(Fight, fight_id, populate_existing=True)
            if fight is None:
                raise NotFoundError("Fight not found")
            self._check_open_for_betting(fight)

            odds = fight.odds_a if chosen == Corner.A else fight.odds_b
            bet = Bet(
                creator_id=creator_id,
                fight_id=fight_id,
                amount=amount,
                chosen_fighter=chosen,
                odds=odds,
                potential_win=payout_for(amount, odds),
                actual_win=0,
                status=BetStatus.PENDING,
            )
            self.db.add(bet)
            await self.db.flush()
            # Debit failure rolls back the bet row as well.
            await self.ledger.record(creator_id, TransactionType.BET_PLACED, amount, bet_id=bet.id)

        logger.info("Bet %s placed by user %s: %s on %s @ %s", bet.id, creator_id, amount, chosen.value, odds)
        await self.events.to_user(creator_id, "bet:update", bet_dict(bet))
        await self.notifications.notify(
            creator_id, "BET_PLACED", "Bet placed",
            f"Your bet of {amount} FCFA on fighter {chosen.value} in '{fight.title}' is registered.",
        )
        return bet

    def _check_open_for_betting(self, fight: Fight) -> None:
        if fight.status != FightStatus.SCHEDULED:
            raise ValidationError(
                "Fight is not open for betting",
                errors=[{"field": "fight_id", "message": f"fight is {fight.status.value}"}],
            )
        scheduled_at = as_utc(fight.scheduled_at)
        if scheduled_at is not None:
            closes_at = scheduled_at - timedelta(minutes=self.settings.BETTING_CUTOFF_MINUTES)
            if utcnow() >= closes_at:
                raise ValidationError(
                    "Betting on this fight is closed",
                    errors=[{"field": "fight_id", "message": "betting closes "
                             f"{self.settings.BETTING_CUTOFF_MINUTES} minutes before the fight"}],
                )

    async def cancel_bet(self, bet_id: int, requester_id: int) -> Bet:
        async with atomic(self.db):
            bet = await self.get_bet(bet_id)
            if bet.creator_id != requester_id:
                raise ForbiddenError("Only the creator can cancel this bet")
            if bet.status != BetStatus.PENDING:
                raise InvalidStateError(f"Cannot cancel a {bet.status.value} bet")
            await self._transition(bet.id, (BetStatus.PENDING,), BetStatus.CANCELLED, cancelled_at=utcnow())
            await self.ledger.record(bet.creator_id, TransactionType.BET_REFUND, bet.amount, bet_id=bet.id)
        bet = await self.get_bet(bet_id)
        logger.info("Bet %s cancelled by user %s, %s refunded", bet.id, requester_id, bet.amount)
        await self.events.to_user(bet.creator_id, "bet:update", bet_dict(bet))
        return bet

    async def _transition(self, bet_id: int, from_statuses: Iterable[BetStatus], to: BetStatus, **values) -> None:
        """Compare-and-set on the bet status; raises if another writer got there first."""
        result = await self.db.execute(
            update(Bet)
            .where(Bet.id == bet_id, Bet.status.in_(list(from_statuses)))
            .values(status=to, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidStateError(f"Bet {bet_id} can no longer move to {to.value}")

    async def _bet_ids(self, fight_id: int, statuses: Iterable[BetStatus]) -> list[int]:
        return list(await self.db.scalars(
            select(Bet.id)
            .where(Bet.fight_id == fight_id, Bet.status.in_(list(statuses)))
            .order_by(Bet.id)
        ))

    # ------------------------------------------------------------------
    # Fight lifecycle hooks
    # ------------------------------------------------------------------

    async def accept_bet(self, bet_id: int) -> Bet:
        async with atomic(self.db):
            await self._transition(bet_id, (BetStatus.PENDING,), BetStatus.ACCEPTED, accepted_at=utcnow())
        bet = await self.get_bet(bet_id)
        await self.events.to_user(bet.creator_id, "bet:update", bet_dict(bet))
        return bet

    async def _move_all(self, fight_id: int, from_status: BetStatus, to: BetStatus, **values) -> int:
        moved = 0
        for bet_id in await self._bet_ids(fight_id, (from_status,)):
            try:
                async with atomic(self.db):
                    await self._transition(bet_id, (from_status,), to, **values)
            except InvalidStateError:
                logger.warning("Bet %s changed state during %s -> %s sweep", bet_id, from_status.value, to.value)
                continue
            moved += 1
            bet = await self.get_bet(bet_id)
            await self.events.to_user(bet.creator_id, "bet:update", bet_dict(bet))
        return moved

    async def accept_fight_bets(self, fight_id: int) -> int:
        """Betting closed: every PENDING bet on the fight is locked in."""
        return await self._move_all(fight_id, BetStatus.PENDING, BetStatus.ACCEPTED, accepted_at=utcnow())

    async def postpone_fight_bets(self, fight_id: int) -> int:
        return await self._move_all(fight_id, BetStatus.ACCEPTED, BetStatus.POSTPONED)

    async def resume_fight_bets(self, fight_id: int) -> int:
        return await self._move_all(fight_id, BetStatus.POSTPONED, BetStatus.ACCEPTED)

    async def void_fight_bets(self, fight_id: int) -> dict:
        """Fight cancelled: refund every open bet in full, one bet per unit of work."""
        refunded, failed = [], []
        for bet_id in await self._bet_ids(fight_id, OPEN_BET_STATUSES):
            try:
                async with atomic(self.db):
                    bet = await self.get_bet(bet_id)
                    await self._transition(bet_id, OPEN_BET_STATUSES, BetStatus.CANCELLED, cancelled_at=utcnow())
                    await self.ledger.record(
                        bet.creator_id, TransactionType.BET_REFUND, bet.amount,
                        bet_id=bet_id, notes="Fight cancelled",
                    )
            except Exception:
                logger.exception("Refund of bet %s failed; left open for retry", bet_id)
                failed.append(bet_id)
                continue
            refunded.append(bet_id)
            bet = await self.get_bet(bet_id)
            await self.events.to_user(bet.creator_id, "bet:update", bet_dict(bet))
            await self.notifications.notify(
                bet.creator_id, "BET_REFUNDED", "Bet refunded",
                f"The fight was cancelled; your stake of {bet.amount} FCFA has been refunded.",
            )
        return {"refunded": refunded, "failed": failed}

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    async def settle_bet(self, bet_id: int, winner) -> Bet:
        """Settle one bet in one unit of work. Settled bets are rejected, never re-paid."""
        winner = as_corner(winner, "winner")
        async with atomic(self.db):
            bet = await self.get_bet(bet_id)
            if bet.status in TERMINAL_BET_STATUSES:
                raise InvalidStateError(f"Bet {bet_id} is already {bet.status.value}")

            if bet.chosen_fighter == winner:
                # Payout uses the odds captured at placement.
                actual_win = payout_for(bet.amount, bet.odds)
                await self._transition(
                    bet_id, OPEN_BET_STATUSES, BetStatus.WON, actual_win=actual_win, settled_at=utcnow()
                )
                await self.ledger.record(bet.creator_id, TransactionType.BET_WIN, actual_win, bet_id=bet_id)
                commission = commission_for(actual_win, self.settings.COMMISSION_RATE)
                if commission > 0:
                    await self.ledger.record(
                        None, TransactionType.COMMISSION, commission,
                        bet_id=bet_id, notes=f"{self.settings.COMMISSION_RATE:.0%} of {actual_win}",
                    )
            else:
                await self._transition(bet_id, OPEN_BET_STATUSES, BetStatus.LOST, actual_win=0, settled_at=utcnow())

        bet = await self.get_bet(bet_id)
        logger.info("Bet %s settled %s, actual_win=%s", bet.id, bet.status.value, bet.actual_win)
        await self.events.to_user(bet.creator_id, "bet:update", bet_dict(bet))
        if bet.status == BetStatus.WON:
            await self.notifications.notify(
                bet.creator_id, "BET_WON", "You won!",
                f"Your bet of {bet.amount} FCFA won {bet.actual_win} FCFA.",
            )
        else:
            await self.notifications.notify(
                bet.creator_id, "BET_LOST", "Bet lost", f"Your bet of {bet.amount} FCFA was lost.",
            )
        return bet

    async def settle_fight(self, fight_id: int, winner) -> dict:
        """Settle every open bet on a fight. Safe to call again after a partial failure."""
        winner = as_corner(winner, "winner")
        fight = await self.db.get(Fight, fight_id, populate_existing=True)
        if fight is None:
            raise NotFoundError("Fight not found")
        if fight.status == FightStatus.CANCELLED:
            raise InvalidStateError("A cancelled fight cannot be settled")
        result = await self.db.scalar(select(FightResult).where(FightResult.fight_id == fight_id))
        if result is not None and result.winner != winner:
            raise InvalidStateError(f"Fight {fight_id} result is already {result.winner.value}")

        summary = {"fight_id": fight_id, "winner": winner.value, "won": [], "lost": [], "failed": []}
        for bet_id in await self._bet_ids(fight_id, OPEN_BET_STATUSES):
            try:
                bet = await self.settle_bet(bet_id, winner)
            except Exception:
                logger.exception("Settlement of bet %s failed; left open for retry", bet_id)
                summary["failed"].append(bet_id)
                continue
            summary["won" if bet.status == BetStatus.WON else "lost"].append(bet_id)
        summary["settled"] = len(summary["won"]) + len(summary["lost"])

        if summary["failed"]:
            logger.warning("Fight %s settlement incomplete: %s bets failed", fight_id, len(summary["failed"]))
        await self.events.broadcast("fight:result", {
            "fight_id": fight_id,
            "winner": winner.value,
            "settled": summary["settled"],
            "pending": len(summary["failed"]),
        })
        return summary

    async def settlement_status(self, fight_id: int) -> dict:
        """Operator view for spotting bets a partial settlement left behind."""
        fight = await self.db.get(Fight, fight_id, populate_existing=True)
        if fight is None:
            raise NotFoundError("Fight not found")
        result = await self.db.scalar(select(FightResult).where(FightResult.fight_id == fight_id))
        rows = await self.db.execute(
            select(Bet.status, func.count(Bet.id)).where(Bet.fight_id == fight_id).group_by(Bet.status)
        )
        counts = {s.value: 0 for s in BetStatus}
        for status, count in rows:
            counts[status.value] = count

        unsettled: list[int] = []
        if result is not None:
            unsettled = await self._bet_ids(fight_id, OPEN_BET_STATUSES)
        return {
            "fight_id": fight_id,
            "fight_status": fight.status.value,
            "winner": result.winner.value if result else None,
            "counts": counts,
            "unsettled_bet_ids": unsettled,
            "complete": result is not None and not unsettled,
        }
