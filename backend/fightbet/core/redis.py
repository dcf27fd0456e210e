from typing import Optional
import redis.asyncio as aioredis
from fightbet.config import settings

_redis: Optional[aioredis.Redis] = None

def redis_client() -> aioredis.Redis:
    """Shared client; from_url does not connect until the first command."""
    global _redis
    if _redis is None:
        _redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis

async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None
