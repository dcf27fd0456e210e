import logging
from typing import Optional

from sqlalchemy import select, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fightbet.core.errors import NotFoundError, InvalidStateError, ValidationError
from fightbet.database import atomic, utcnow
from fightbet.models.fight import Fighter, Fight, FightResult, FightStatus, Corner
from fightbet.services.bet_engine import BetEngine, as_corner
from fightbet.services.events import EventDispatcher

logger = logging.getLogger(__name__)

VALID_TRANSITIONS = {
    FightStatus.SCHEDULED: (FightStatus.ONGOING, FightStatus.CANCELLED, FightStatus.POSTPONED),
    FightStatus.ONGOING: (FightStatus.FINISHED, FightStatus.CANCELLED),
    FightStatus.POSTPONED: (FightStatus.SCHEDULED, FightStatus.CANCELLED),
    FightStatus.FINISHED: (),
    FightStatus.CANCELLED: (),
}


def fighter_dict(f: Fighter) -> dict:
    return {
        "id": f.id,
        "name": f.name,
        "nickname": f.nickname,
        "stable": f.stable,
        "record": {"wins": f.wins, "losses": f.losses, "draws": f.draws},
        "is_active": f.is_active,
    }


def fight_dict(fight: Fight, result: Optional[FightResult] = None) -> dict:
    return {
        "id": fight.id,
        "title": fight.title,
        "fighter_a": fighter_dict(fight.fighter_a) if fight.fighter_a else None,
        "fighter_b": fighter_dict(fight.fighter_b) if fight.fighter_b else None,
        "odds_a": str(fight.odds_a),
        "odds_b": str(fight.odds_b),
        "status": fight.status.value,
        "scheduled_at": fight.scheduled_at.isoformat() if fight.scheduled_at else None,
        "started_at": fight.started_at.isoformat() if fight.started_at else None,
        "ended_at": fight.ended_at.isoformat() if fight.ended_at else None,
        "result": {
            "winner": result.winner.value,
            "victory_method": result.victory_method,
            "validated_at": result.validated_at.isoformat() if result.validated_at else None,
        } if result else None,
    }


class FightService:
    def __init__(self, db: AsyncSession, bets: BetEngine, events: EventDispatcher):
        self.db = db
        self.bets = bets
        self.events = events

    # Fighters

    async def create_fighter(self, name: str, nickname: Optional[str] = None, stable: Optional[str] = None) -> Fighter:
        fighter = Fighter(name=name, nickname=nickname, stable=stable)
        self.db.add(fighter)
        await self.db.commit()
        return fighter

    async def get_fighter(self, fighter_id: int) -> Fighter:
        fighter = await self.db.get(Fighter, fighter_id, populate_existing=True)
        if fighter is None:
            raise NotFoundError("Fighter not found")
        return fighter

    async def list_fighters(self, include_inactive: bool = False) -> list[Fighter]:
        query = select(Fighter).order_by(Fighter.name)
        if not include_inactive:
            query = query.where(Fighter.is_active == True)
        return list(await self.db.scalars(query))

    async def update_fighter(self, fighter_id: int, **fields) -> Fighter:
        fighter = await self.get_fighter(fighter_id)
        for k, v in fields.items():
            setattr(fighter, k, v)
        await self.db.commit()
        return fighter

    # Fights

    async def create_fight(self, title: str, fighter_a_id: int, fighter_b_id: int, odds_a, odds_b, scheduled_at=None) -> Fight:
        if fighter_a_id == fighter_b_id:
            raise ValidationError("A fighter cannot fight themselves",
                                  errors=[{"field": "fighter_b_id", "message": "must differ from fighter_a_id"}])
        for fighter_id in (fighter_a_id, fighter_b_id):
            fighter = await self.get_fighter(fighter_id)
            if not fighter.is_active:
                raise ValidationError(f"Fighter {fighter_id} is inactive")
        fight = Fight(
            title=title,
            fighter_a_id=fighter_a_id,
            fighter_b_id=fighter_b_id,
            odds_a=odds_a,
            odds_b=odds_b,
            scheduled_at=scheduled_at,
            status=FightStatus.SCHEDULED,
        )
        self.db.add(fight)
        await self.db.commit()
        return await self.get_fight(fight.id)

    async def get_fight(self, fight_id: int) -> Fight:
        fight = await self.db.get(Fight, fight_id, populate_existing=True)
        if fight is None:
            raise NotFoundError("Fight not found")
        return fight

    async def get_result(self, fight_id: int) -> Optional[FightResult]:
        return await self.db.scalar(select(FightResult).where(FightResult.fight_id == fight_id))

    async def list_fights(self, status: Optional[FightStatus] = None, limit: int = 20, offset: int = 0) -> tuple[list[Fight], int]:
        query = select(Fight)
        count_query = select(func.count(Fight.id))
        if status is not None:
            query = query.where(Fight.status == status)
            count_query = count_query.where(Fight.status == status)
        query = query.order_by(Fight.scheduled_at.asc(), Fight.id.asc()).limit(limit).offset(offset)
        fights = list(await self.db.scalars(query))
        total = await self.db.scalar(count_query)
        return fights, total or 0

    async def update_fight(self, fight_id: int, **fields) -> Fight:
        """Title, schedule and odds. Odds only move while betting is open; placed bets keep theirs."""
        fight = await self.get_fight(fight_id)
        if ("odds_a" in fields or "odds_b" in fields) and fight.status != FightStatus.SCHEDULED:
            raise InvalidStateError("Odds can only change on a scheduled fight")
        for k, v in fields.items():
            setattr(fight, k, v)
        await self.db.commit()
        fight = await self.get_fight(fight_id)
        await self.events.broadcast("fight:update", fight_dict(fight))
        return fight

    async def update_status(self, fight_id: int, new_status: FightStatus) -> Fight:
        fight = await self.get_fight(fight_id)
        current = fight.status
        if new_status not in VALID_TRANSITIONS[current]:
            raise InvalidStateError(f"Invalid fight status transition: {current.value} -> {new_status.value}")

        values = {"status": new_status}
        if new_status == FightStatus.ONGOING:
            values["started_at"] = utcnow()
        elif new_status in (FightStatus.FINISHED, FightStatus.CANCELLED):
            values["ended_at"] = utcnow()
        async with atomic(self.db):
            result = await self.db.execute(
                update(Fight)
                .where(Fight.id == fight_id, Fight.status == current)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InvalidStateError("Fight status changed concurrently")
        logger.info("Fight %s: %s -> %s", fight_id, current.value, new_status.value)

        if new_status == FightStatus.ONGOING:
            await self.bets.accept_fight_bets(fight_id)
        elif new_status == FightStatus.POSTPONED:
            await self.bets.postpone_fight_bets(fight_id)
        elif new_status == FightStatus.SCHEDULED:
            await self.bets.resume_fight_bets(fight_id)
        elif new_status == FightStatus.CANCELLED:
            await self.bets.void_fight_bets(fight_id)

        fight = await self.get_fight(fight_id)
        await self.events.broadcast("fight:update", fight_dict(fight))
        return fight

    async def record_result(
        self,
        fight_id: int,
        winner,
        admin_id: Optional[int] = None,
        victory_method: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> dict:
        """Write the fight's immutable result, then run the settlement sweep.

        Calling again with the same winner only re-runs the sweep, which is how
        bets left open by a partial failure get retried.
        """
        winner = as_corner(winner, "winner")
        fight = await self.get_fight(fight_id)
        existing = await self.get_result(fight_id)
        if existing is not None:
            if existing.winner != winner:
                raise InvalidStateError(f"Result already recorded: fighter {existing.winner.value} won")
        else:
            if fight.status not in (FightStatus.ONGOING, FightStatus.FINISHED):
                raise InvalidStateError(f"Cannot record a result for a {fight.status.value} fight")
            try:
                await self._write_result(fight, winner, admin_id, victory_method, notes)
            except IntegrityError:
                raise InvalidStateError("Result already recorded for this fight")
            logger.info("Fight %s result recorded: %s wins (admin %s)", fight_id, winner.value, admin_id)

        return await self.bets.settle_fight(fight_id, winner)

    async def _write_result(self, fight: Fight, winner: Corner, admin_id, victory_method, notes) -> None:
        winner_id = fight.fighter_a_id if winner == Corner.A else fight.fighter_b_id
        loser_id = fight.fighter_b_id if winner == Corner.A else fight.fighter_a_id
        async with atomic(self.db):
            self.db.add(FightResult(
                fight_id=fight.id,
                winner=winner,
                victory_method=victory_method,
                notes=notes,
                admin_id=admin_id,
            ))
            if fight.status != FightStatus.FINISHED:
                fight.status = FightStatus.FINISHED
                fight.ended_at = utcnow()
            await self.db.execute(update(Fighter).where(Fighter.id == winner_id).values(wins=Fighter.wins + 1))
            await self.db.execute(update(Fighter).where(Fighter.id == loser_id).values(losses=Fighter.losses + 1))
