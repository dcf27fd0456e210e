from typing import Optional
from fastapi import APIRouter, Depends, Query
from fightbet.config import Settings
from fightbet.core.deps import get_current_user, get_bet_engine, get_settings
from fightbet.core.errors import NotFoundError
from fightbet.core.validation import validate_bet_request
from fightbet.models.bet import BetStatus
from fightbet.models.user import User
from fightbet.schemas.bet import PlaceBetRequest
from fightbet.services.bet_engine import BetEngine, bet_dict

router = APIRouter(prefix="/api/bets", tags=["bets"])

@router.post("", status_code=201)
async def place_bet(
    body: PlaceBetRequest,
    user: User = Depends(get_current_user),
    engine: BetEngine = Depends(get_bet_engine),
    cfg: Settings = Depends(get_settings),
):
    data = validate_bet_request(body.model_dump(), cfg).unwrap()
    bet = await engine.place_bet(user.id, data["fight_id"], data["amount"], data["chosen_fighter"])
    return bet_dict(bet)

@router.get("/my")
async def my_bets(
    status: Optional[BetStatus] = None,
    fight_id: Optional[int] = None,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    engine: BetEngine = Depends(get_bet_engine),
):
    bets = await engine.list_bets(user_id=user.id, fight_id=fight_id, status=status, limit=limit, offset=offset)
    return [bet_dict(b) for b in bets]

@router.get("/stats")
async def my_stats(user: User = Depends(get_current_user), engine: BetEngine = Depends(get_bet_engine)):
    return await engine.user_stats(user.id)

@router.get("/{bet_id}")
async def get_bet(bet_id: int, user: User = Depends(get_current_user), engine: BetEngine = Depends(get_bet_engine)):
    bet = await engine.get_bet(bet_id)
    if bet.creator_id != user.id:
        raise NotFoundError("Bet not found")
    return bet_dict(bet)

@router.post("/{bet_id}/cancel")
async def cancel_bet(bet_id: int, user: User = Depends(get_current_user), engine: BetEngine = Depends(get_bet_engine)):
    bet = await engine.cancel_bet(bet_id, user.id)
    return bet_dict(bet)
