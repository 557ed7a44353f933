"""Redis-backed key/value cache that degrades to a miss when Redis is unavailable"""

import json
import logging
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class RedisCache:
    """
    JSON cache over redis.asyncio.

    Every Redis or serialization error is logged and swallowed: get()
    returns None, writes return False. Callers never see cache failures.
    """

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisCache":
        client = redis.from_url(
            redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_timeout=0.5,
            socket_connect_timeout=2.0,
        )
        return cls(client)

    async def get(self, key: str) -> Optional[Any]:
        try:
            data = await self.client.get(key)
            return json.loads(data) if data else None
        except (RedisError, OSError, ValueError) as e:
            logger.error("Cache get error", extra={"key": key, "error": str(e)})
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int = 3600) -> bool:
        try:
            await self.client.setex(key, ttl_seconds, json.dumps(value))
            return True
        except (RedisError, OSError, TypeError, ValueError) as e:
            logger.error("Cache set error", extra={"key": key, "error": str(e)})
            return False

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except (RedisError, OSError):
            return False

    async def close(self) -> None:
        await self.client.aclose()

    @staticmethod
    def generate_key(prefix: str, *parts: str) -> str:
        return ":".join([prefix, *parts])
