import logging

import redis
from redis.exceptions import RedisError
from callscreen.core.config import settings

logger = logging.getLogger(__name__)


class RateLimiter:
    """Fixed-window counter in Redis. Fails open when Redis is unreachable."""

    def __init__(self, prefix: str = "login", limit: int = 5, window_seconds: int = 300, client: redis.Redis | None = None):
        self.prefix = prefix
        self.limit = limit
        self.window_seconds = window_seconds
        self.client = client or redis.Redis.from_url(
            settings.redis_url, decode_responses=True, socket_connect_timeout=1, socket_timeout=1
        )

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def hit(self, key: str) -> bool:
        redis_key = self._key(key)
        try:
            count = self.client.incr(redis_key)
            if count == 1:
                self.client.expire(redis_key, self.window_seconds)
            return count <= self.limit
        except RedisError:
            logger.debug("Rate limiter unavailable for %s", redis_key)
            return True

    def reset(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except RedisError:
            return
