# services/token_cache_service.py
"""
JTI (JWT Token ID) cache for replay protection on the admin endpoints.

Storage in Redis: jti:{jti} -> 1 with a TTL matching the token lifetime.
"""

from typing import Optional

import redis

from backup_service.core.config import settings
from backup_service.core.logger import logger
from backup_service.core.redis_client import get_redis


class TokenCacheService:

    def __init__(self, client: Optional[redis.Redis] = None, ttl_seconds: Optional[int] = None):
        self._client = client
        self.ttl = ttl_seconds or settings.JTI_CACHE_TTL_SECONDS

    @property
    def redis(self) -> redis.Redis:
        if self._client is None:
            self._client = get_redis()
        return self._client

    def is_jti_used(self, jti: str) -> bool:
        """
        True if the token id was seen before. Fails closed: when Redis
        cannot be reached the token is treated as used.
        """
        try:
            exists = self.redis.exists(f"jti:{jti}")
        except Exception as e:
            logger.error(f"Failed to check JTI: {e}", extra={"jti": jti})
            return True

        if exists:
            logger.warning("JTI replay attempt detected", extra={"jti": jti})
        return bool(exists)

    def mark_jti_used(self, jti: str) -> None:
        try:
            self.redis.setex(name=f"jti:{jti}", time=self.ttl, value=1)
        except Exception as e:
            # the request is already authenticated; a missed write only weakens replay protection
            logger.error(f"Failed to mark JTI as used: {e}", extra={"jti": jti})


token_cache_service = TokenCacheService()
