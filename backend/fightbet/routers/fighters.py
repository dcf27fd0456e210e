from fastapi import APIRouter, Depends
from fightbet.core.deps import get_fight_service
from fightbet.services.fights import FightService, fighter_dict

router = APIRouter(prefix="/api/fighters", tags=["fighters"])

@router.get("")
async def list_fighters(fights: FightService = Depends(get_fight_service)):
    return [fighter_dict(f) for f in await fights.list_fighters()]

@router.get("/{fighter_id}")
async def get_fighter(fighter_id: int, fights: FightService = Depends(get_fight_service)):
    return fighter_dict(await fights.get_fighter(fighter_id))
