from typing import Optional
from pydantic import BaseModel, Field


class AdjustmentRequest(BaseModel):
    amount: int = Field(gt=0)
    notes: Optional[str] = Field(default=None, max_length=500)


class UserActiveRequest(BaseModel):
    is_active: bool
