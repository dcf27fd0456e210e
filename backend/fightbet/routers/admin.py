from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from fightbet.core.deps import require_admin, get_bet_engine, get_cashier, get_fight_service
from fightbet.core.errors import NotFoundError, InvalidStateError, ValidationError
from fightbet.core.validation import validate_fight_request
from fightbet.database import get_db
from fightbet.models.user import User
from fightbet.models.wallet import Wallet
from fightbet.models.transaction import Transaction, TransactionType, TransactionStatus
from fightbet.schemas.admin import AdjustmentRequest, UserActiveRequest
from fightbet.schemas.fight import (
    CreateFighterRequest,
    UpdateFighterRequest,
    CreateFightRequest,
    UpdateFightRequest,
    FightStatusRequest,
    FightResultRequest,
)
from fightbet.schemas.wallet import ConfirmRequest
from fightbet.services.bet_engine import BetEngine
from fightbet.services.cashier import Cashier, transaction_dict
from fightbet.services.fights import FightService, fight_dict, fighter_dict

router = APIRouter(prefix="/api/admin", tags=["admin"])

# Fighters

@router.post("/fighters", status_code=201)
async def create_fighter(
    body: CreateFighterRequest,
    admin: User = Depends(require_admin),
    fights: FightService = Depends(get_fight_service),
):
    fighter = await fights.create_fighter(**body.model_dump())
    return fighter_dict(fighter)

@router.put("/fighters/{fighter_id}")
async def update_fighter(
    fighter_id: int,
    body: UpdateFighterRequest,
    admin: User = Depends(require_admin),
    fights: FightService = Depends(get_fight_service),
):
    fighter = await fights.update_fighter(fighter_id, **body.model_dump(exclude_none=True))
    return fighter_dict(fighter)

# Fights

@router.post("/fights", status_code=201)
async def create_fight(
    body: CreateFightRequest,
    admin: User = Depends(require_admin),
    fights: FightService = Depends(get_fight_service),
):
    data = validate_fight_request(body.model_dump()).unwrap()
    fight = await fights.create_fight(**data)
    return fight_dict(fight)

@router.put("/fights/{fight_id}")
async def update_fight(
    fight_id: int,
    body: UpdateFightRequest,
    admin: User = Depends(require_admin),
    fights: FightService = Depends(get_fight_service),
):
    data = validate_fight_request(body.model_dump(exclude_none=True), partial=True).unwrap()
    if not data:
        raise ValidationError("Nothing to update")
    fight = await fights.update_fight(fight_id, **data)
    return fight_dict(fight)

@router.put("/fights/{fight_id}/status")
async def update_fight_status(
    fight_id: int,
    body: FightStatusRequest,
    admin: User = Depends(require_admin),
    fights: FightService = Depends(get_fight_service),
):
    fight = await fights.update_status(fight_id, body.status)
    return fight_dict(fight)

@router.post("/fights/{fight_id}/result")
async def record_fight_result(
    fight_id: int,
    body: FightResultRequest,
    admin: User = Depends(require_admin),
    fights: FightService = Depends(get_fight_service),
):
    """Record the winner and settle every open bet on the fight."""
    return await fights.record_result(
        fight_id, body.winner, admin_id=admin.id, victory_method=body.victory_method, notes=body.notes,
    )

@router.get("/fights/{fight_id}/settlement")
async def fight_settlement(
    fight_id: int,
    admin: User = Depends(require_admin),
    engine: BetEngine = Depends(get_bet_engine),
):
    return await engine.settlement_status(fight_id)

@router.post("/fights/{fight_id}/settle")
async def retry_settlement(
    fight_id: int,
    admin: User = Depends(require_admin),
    fights: FightService = Depends(get_fight_service),
    engine: BetEngine = Depends(get_bet_engine),
):
    """Re-run the sweep for bets a partial settlement left open."""
    result = await fights.get_result(fight_id)
    if result is None:
        raise InvalidStateError("No result recorded for this fight")
    return await engine.settle_fight(fight_id, result.winner)

# Transactions

@router.post("/transactions/{transaction_id}/confirm")
async def confirm_transaction(
    transaction_id: int,
    body: ConfirmRequest,
    admin: User = Depends(require_admin),
    cashier: Cashier = Depends(get_cashier),
):
    if body.status not in (TransactionStatus.CONFIRMED, TransactionStatus.FAILED):
        raise ValidationError("status must be CONFIRMED or FAILED")
    tx = await cashier.confirm(transaction_id, body.external_ref, body.status)
    return transaction_dict(tx)

@router.get("/commissions")
async def commission_summary(
    limit: int = Query(default=50, ge=1, le=500),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Commission recorded on winning bets. Informational; no wallet holds it."""
    total, count = (await db.execute(
        select(func.coalesce(func.sum(Transaction.amount), 0), func.count(Transaction.id))
        .where(Transaction.type == TransactionType.COMMISSION)
    )).one()
    recent = await db.scalars(
        select(Transaction)
        .where(Transaction.type == TransactionType.COMMISSION)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .limit(limit)
    )
    return {"total": total, "count": count, "recent": [transaction_dict(tx) for tx in recent]}

# Users

@router.get("/users")
async def list_users(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    rows = await db.execute(
        select(User, Wallet)
        .outerjoin(Wallet, Wallet.user_id == User.id)
        .order_by(User.id)
        .limit(limit)
        .offset(offset)
    )
    return [
        {
            "id": u.id,
            "email": u.email,
            "name": u.name,
            "phone": u.phone,
            "role": u.role.value,
            "is_active": u.is_active,
            "balance": w.balance if w else 0,
            "bonus_balance": w.bonus_balance if w else 0,
            "locked_balance": w.locked_balance if w else 0,
            "created_at": u.created_at.isoformat() if u.created_at else None,
        }
        for u, w in rows
    ]

@router.put("/users/{user_id}/active")
async def set_user_active(
    user_id: int,
    body: UserActiveRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    if user.id == admin.id and not body.is_active:
        raise InvalidStateError("Admins cannot deactivate themselves")
    user.is_active = body.is_active
    await db.commit()
    return {"message": "updated", "id": user.id, "is_active": user.is_active}

async def _adjust(cashier: Cashier, db: AsyncSession, user_id: int, type: TransactionType, body: AdjustmentRequest) -> dict:
    if await db.get(User, user_id) is None:
        raise NotFoundError("User not found")
    tx = await cashier.adjust(user_id, type, body.amount, notes=body.notes)
    return transaction_dict(tx)

@router.post("/users/{user_id}/bonus", status_code=201)
async def grant_bonus(
    user_id: int,
    body: AdjustmentRequest,
    admin: User = Depends(require_admin),
    cashier: Cashier = Depends(get_cashier),
    db: AsyncSession = Depends(get_db),
):
    return await _adjust(cashier, db, user_id, TransactionType.BONUS, body)

@router.post("/users/{user_id}/penalty", status_code=201)
async def apply_penalty(
    user_id: int,
    body: AdjustmentRequest,
    admin: User = Depends(require_admin),
    cashier: Cashier = Depends(get_cashier),
    db: AsyncSession = Depends(get_db),
):
    return await _adjust(cashier, db, user_id, TransactionType.PENALTY, body)
