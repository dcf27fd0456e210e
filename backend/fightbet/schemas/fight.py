from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field
from fightbet.models.fight import Corner, FightStatus


class CreateFighterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    nickname: Optional[str] = Field(default=None, max_length=100)
    stable: Optional[str] = Field(default=None, max_length=100)


class UpdateFighterRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    nickname: Optional[str] = Field(default=None, max_length=100)
    stable: Optional[str] = Field(default=None, max_length=100)
    is_active: Optional[bool] = None


class CreateFightRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    fighter_a_id: int
    fighter_b_id: int
    odds_a: Decimal = Field(max_digits=6, decimal_places=2)
    odds_b: Decimal = Field(max_digits=6, decimal_places=2)
    scheduled_at: Optional[datetime] = None


class UpdateFightRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    odds_a: Optional[Decimal] = Field(default=None, max_digits=6, decimal_places=2)
    odds_b: Optional[Decimal] = Field(default=None, max_digits=6, decimal_places=2)
    scheduled_at: Optional[datetime] = None


class FightStatusRequest(BaseModel):
    status: FightStatus


class FightResultRequest(BaseModel):
    winner: Corner
    victory_method: Optional[str] = Field(default=None, max_length=50)
    notes: Optional[str] = Field(default=None, max_length=500)
