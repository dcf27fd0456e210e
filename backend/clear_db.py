"""Wipe every row from the development database (schema is kept)."""
import asyncio
from sqlalchemy import delete
from fightbet.database import AsyncSessionLocal
from fightbet.models import User, Wallet, Transaction, Bet, FightResult, Fight, Fighter, Notification

async def clear_all_data():
    async with AsyncSessionLocal() as session:
        # Delete in correct order (respecting foreign keys)
        for model in (Notification, Transaction, Bet, FightResult, Fight, Fighter, Wallet, User):
            await session.execute(delete(model))
        await session.commit()
        print("All data deleted")

if __name__ == "__main__":
    asyncio.run(clear_all_data())
