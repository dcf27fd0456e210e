from pydantic import BaseModel


class PlaceBetRequest(BaseModel):
    fight_id: int
    amount: int
    chosen_fighter: str
