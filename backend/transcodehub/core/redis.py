"""Redis connection configuration."""

import redis.asyncio as redis


def create_redis_client(url: str) -> redis.Redis:
    """Create a Redis client for the given URL."""
    return redis.from_url(url, decode_responses=True)
