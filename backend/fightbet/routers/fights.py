from typing import Optional
from fastapi import APIRouter, Depends, Query
from fightbet.core.deps import get_fight_service
from fightbet.models.fight import FightStatus
from fightbet.services.fights import FightService, fight_dict

router = APIRouter(prefix="/api/fights", tags=["fights"])

@router.get("")
async def list_fights(
    status: Optional[FightStatus] = None,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    fights: FightService = Depends(get_fight_service),
):
    items, total = await fights.list_fights(status=status, limit=limit, offset=offset)
    return {"items": [fight_dict(f) for f in items], "total": total, "limit": limit, "offset": offset}

@router.get("/{fight_id}")
async def get_fight(fight_id: int, fights: FightService = Depends(get_fight_service)):
    fight = await fights.get_fight(fight_id)
    return fight_dict(fight, await fights.get_result(fight_id))
