"""Redis-backed rate limiting."""

from typing import Tuple
import logging
import time

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Fixed-window counters in Redis.
    
    Fails open: when Redis is unreachable the action is allowed and the
    error is logged.
    """
    
    def __init__(self, redis_client: redis.Redis):
        """
        Args:
            redis_client: redis.asyncio client
        """
        self.redis = redis_client
    
    @classmethod
    def from_url(cls, url: str) -> "RateLimiter":
        return cls(redis.from_url(url))
    
    async def check_limit(
        self,
        key: str,
        limit: int,
        window_seconds: int,
    ) -> Tuple[bool, int]:
        """
        Count one hit and check it against the limit.
        
        Args:
            key: Unique identifier (e.g., "user:123:check_hosts")
            limit: Max requests allowed
            window_seconds: Time window
        
        Returns:
            (is_allowed: bool, retry_after_seconds: int)
        """
        now = int(time.time())
        window_key = f"ratelimit:{key}:{now // window_seconds}"
        
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.incr(window_key)
                pipe.expire(window_key, window_seconds * 2)
                results = await pipe.execute()
        except RedisError as e:
            logger.error(f"Rate limiter error: {e}")
            return True, 0
        
        current_count = results[0]
        if current_count <= limit:
            logger.debug(f"Rate limit OK: {key} ({current_count}/{limit})")
            return True, 0
        
        retry_after = window_seconds - (now % window_seconds)
        logger.warning(f"Rate limit EXCEEDED: {key} ({current_count}/{limit})")
        return False, retry_after
    
    async def close(self):
        await self.redis.aclose()
