# creator_match/infrastructure/redis_cache.py
import redis.asyncio as aioredis


def create_redis(redis_url: str) -> aioredis.Redis:
    return aioredis.from_url(redis_url, decode_responses=True)
