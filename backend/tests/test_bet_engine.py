from datetime import timedelta
import pytest
from sqlalchemy import select
from fightbet.core.errors import (
    ForbiddenError,
    InsufficientFundsError,
    InvalidStateError,
    ValidationError,
)
from fightbet.models import Bet, BetStatus, Corner, FightStatus, Transaction, TransactionType
from conftest import make_user, make_fight


async def _types_for(session, bet_id):
    rows = await session.scalars(select(Transaction.type).where(Transaction.bet_id == bet_id).order_by(Transaction.id))
    return list(rows)


@pytest.mark.asyncio
async def test_place_bet_debits_stake_and_snapshots_odds(session, services):
    user = await make_user(session, "a@example.com", balance=5000)
    fight = await make_fight(session, odds_a="2.50")
    bet = await services.bets.place_bet(user.id, fight.id, 1000, "A")

    assert bet.status == BetStatus.PENDING
    assert bet.potential_win == 2500
    assert await services.wallets.get_balance(user.id) == 4000
    assert await _types_for(session, bet.id) == [TransactionType.BET_PLACED]


@pytest.mark.asyncio
async def test_place_then_cancel_restores_balance(session, services):
    user = await make_user(session, "a@example.com", balance=5000)
    fight = await make_fight(session)
    bet = await services.bets.place_bet(user.id, fight.id, 1000, Corner.B)

    cancelled = await services.bets.cancel_bet(bet.id, user.id)
    assert cancelled.status == BetStatus.CANCELLED
    assert await services.wallets.get_balance(user.id) == 5000
    assert await _types_for(session, bet.id) == [TransactionType.BET_PLACED, TransactionType.BET_REFUND]


@pytest.mark.asyncio
async def test_insufficient_balance_leaves_no_bet(session, services):
    user = await make_user(session, "a@example.com", balance=500)
    fight = await make_fight(session)
    with pytest.raises(InsufficientFundsError):
        await services.bets.place_bet(user.id, fight.id, 1000, "A")
    assert await session.scalar(select(Bet.id)) is None
    assert await services.wallets.get_balance(user.id) == 500


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [99, 1_000_001])
async def test_amount_bounds(session, services, amount):
    user = await make_user(session, "a@example.com", balance=2_000_000)
    fight = await make_fight(session)
    with pytest.raises(ValidationError):
        await services.bets.place_bet(user.id, fight.id, amount, "A")


@pytest.mark.asyncio
async def test_betting_closes_before_the_fight(session, services):
    user = await make_user(session, "a@example.com", balance=5000)
    fight = await make_fight(session, starts_in=timedelta(minutes=10))
    with pytest.raises(ValidationError):
        await services.bets.place_bet(user.id, fight.id, 1000, "A")


@pytest.mark.asyncio
async def test_no_bets_on_a_started_fight(session, services):
    user = await make_user(session, "a@example.com", balance=5000)
    fight = await make_fight(session, status=FightStatus.ONGOING)
    with pytest.raises(ValidationError):
        await services.bets.place_bet(user.id, fight.id, 1000, "A")


@pytest.mark.asyncio
async def test_only_creator_cancels_and_only_while_pending(session, services):
    user = await make_user(session, "a@example.com", balance=5000)
    other = await make_user(session, "b@example.com")
    fight = await make_fight(session)
    bet = await services.bets.place_bet(user.id, fight.id, 1000, "A")

    with pytest.raises(ForbiddenError):
        await services.bets.cancel_bet(bet.id, other.id)
    await services.bets.accept_bet(bet.id)
    with pytest.raises(InvalidStateError):
        await services.bets.cancel_bet(bet.id, user.id)


@pytest.mark.asyncio
async def test_winning_bet_pays_odds_and_records_commission(session, services):
    user = await make_user(session, "a@example.com", balance=1000)
    fight = await make_fight(session, odds_a="2.50")
    bet = await services.bets.place_bet(user.id, fight.id, 1000, "A")

    settled = await services.bets.settle_bet(bet.id, "A")
    assert settled.status == BetStatus.WON
    assert settled.actual_win == 2500
    assert await services.wallets.get_balance(user.id) == 2500

    commission = await session.scalar(
        select(Transaction).where(Transaction.bet_id == bet.id, Transaction.type == TransactionType.COMMISSION)
    )
    assert commission.amount == 250
    assert commission.user_id is None
    assert await _types_for(session, bet.id) == [TransactionType.BET_PLACED, TransactionType.BET_WIN, TransactionType.COMMISSION]
    history = await services.ledger.list_for_user(user.id)
    assert sorted(tx.type.value for tx in history) == ["BET_PLACED", "BET_WIN"]


@pytest.mark.asyncio
async def test_settled_bet_cannot_be_paid_twice(session, services):
    user = await make_user(session, "a@example.com", balance=1000)
    fight = await make_fight(session, odds_a="2.50")
    bet = await services.bets.place_bet(user.id, fight.id, 1000, "A")
    await services.bets.settle_bet(bet.id, "A")

    with pytest.raises(InvalidStateError):
        await services.bets.settle_bet(bet.id, "A")
    assert await services.wallets.get_balance(user.id) == 2500
    wins = await session.scalars(
        select(Transaction.id).where(Transaction.bet_id == bet.id, Transaction.type == TransactionType.BET_WIN)
    )
    assert len(list(wins)) == 1


@pytest.mark.asyncio
async def test_losing_bet_moves_no_money(session, services):
    user = await make_user(session, "a@example.com", balance=1000)
    fight = await make_fight(session)
    bet = await services.bets.place_bet(user.id, fight.id, 1000, "B")

    settled = await services.bets.settle_bet(bet.id, "A")
    assert settled.status == BetStatus.LOST
    assert settled.actual_win == 0
    assert await services.wallets.get_balance(user.id) == 0


@pytest.mark.asyncio
async def test_settle_fight_summarises_and_is_safe_to_rerun(session, services):
    winner = await make_user(session, "w@example.com", balance=1000)
    loser = await make_user(session, "l@example.com", balance=1000)
    fight = await make_fight(session, odds_a="1.80")
    won_bet = await services.bets.place_bet(winner.id, fight.id, 1000, "A")
    lost_bet = await services.bets.place_bet(loser.id, fight.id, 1000, "B")

    summary = await services.bets.settle_fight(fight.id, "A")
    assert summary["won"] == [won_bet.id]
    assert summary["lost"] == [lost_bet.id]
    assert summary["failed"] == []

    again = await services.bets.settle_fight(fight.id, "A")
    assert again["settled"] == 0
    assert await services.wallets.get_balance(winner.id) == 1800


@pytest.mark.asyncio
async def test_settle_fight_keeps_going_past_a_failed_bet_and_retries_it(session, services, monkeypatch):
    # Ids are read up front; the failed unit of work rolls back and expires loaded rows.
    first_id = (await make_user(session, "first@example.com", balance=1000)).id
    second_id = (await make_user(session, "second@example.com", balance=1000)).id
    fight_id = (await make_fight(session, odds_a="2.00")).id
    first_bet = (await services.bets.place_bet(first_id, fight_id, 1000, "A")).id
    second_bet = (await services.bets.place_bet(second_id, fight_id, 1000, "A")).id

    record = services.ledger.record

    async def failing_record(user_id, type, amount, bet_id=None, notes=None):
        if bet_id == second_bet and type == TransactionType.BET_WIN:
            raise RuntimeError("ledger unavailable")
        return await record(user_id, type, amount, bet_id=bet_id, notes=notes)

    monkeypatch.setattr(services.ledger, "record", failing_record)
    summary = await services.bets.settle_fight(fight_id, "A")
    assert summary["won"] == [first_bet]
    assert summary["failed"] == [second_bet]
    assert (await services.bets.get_bet(second_bet)).status == BetStatus.PENDING
    assert await services.wallets.get_balance(first_id) == 2000
    assert await services.wallets.get_balance(second_id) == 0

    monkeypatch.undo()
    retry = await services.bets.settle_fight(fight_id, "A")
    assert retry["won"] == [second_bet]
    assert retry["failed"] == []
    assert await services.wallets.get_balance(first_id) == 2000
    assert await services.wallets.get_balance(second_id) == 2000
    assert await _types_for(session, second_bet) == [
        TransactionType.BET_PLACED, TransactionType.BET_WIN, TransactionType.COMMISSION,
    ]


@pytest.mark.asyncio
async def test_user_stats(session, services):
    user = await make_user(session, "a@example.com", balance=5000)
    fight = await make_fight(session, odds_a="2.00")
    first = await services.bets.place_bet(user.id, fight.id, 1000, "A")
    second = await services.bets.place_bet(user.id, fight.id, 500, "B")
    await services.bets.settle_bet(first.id, "A")
    await services.bets.settle_bet(second.id, "A")

    stats = await services.bets.user_stats(user.id)
    assert stats["total_bets"] == 2
    assert stats["total_won"] == 2000
    assert stats["net_result"] == 500
    assert stats["win_rate"] == 50.0


@pytest.mark.asyncio
async def test_unknown_winner_is_a_validation_error(session, services):
    user = await make_user(session, "a@example.com", balance=1000)
    fight = await make_fight(session)
    bet = await services.bets.place_bet(user.id, fight.id, 1000, "A")

    with pytest.raises(ValidationError):
        await services.bets.settle_bet(bet.id, "C")
    with pytest.raises(ValidationError):
        await services.bets.settle_fight(fight.id, "draw")
    with pytest.raises(ValidationError):
        await services.fights.record_result(fight.id, "C")
    assert (await services.bets.get_bet(bet.id)).status == BetStatus.PENDING
