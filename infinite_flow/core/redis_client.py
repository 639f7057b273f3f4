"""
Content API — Redis client

One client is built in the application lifespan and kept on app.state;
handlers receive it through the get_redis dependency.
"""
import redis.asyncio as aioredis
from fastapi import Request

from infinite_flow.core.config import Settings


def create_redis(settings: Settings) -> aioredis.Redis:
    return aioredis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_connect_timeout=settings.HEALTH_CHECK_TIMEOUT,
    )


def get_redis(request: Request) -> aioredis.Redis:
    return request.app.state.redis


async def close_redis(client: aioredis.Redis | None):
    if client is not None:
        await client.aclose()
