# core/redis_client.py
"""
Redis client factory with connection pooling.

Backs the JTI (JWT Token ID) replay cache for the admin trigger endpoints.
The pool is created on first use, not at import.
"""

import redis
from redis.connection import ConnectionPool
from typing import Optional
from backup_service.core.config import settings
from backup_service.core.logger import logger


class RedisClient:
    """
    Singleton Redis client with connection pooling.
    """

    _instance: Optional['RedisClient'] = None
    _pool: Optional[ConnectionPool] = None
    _client: Optional[redis.Redis] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def _initialize_pool(self):
        logger.info(
            "Initializing Redis connection pool",
            extra={
                "host": settings.REDIS_HOST,
                "port": settings.REDIS_PORT,
                "ssl": settings.REDIS_SSL,
                "max_connections": settings.REDIS_MAX_CONNECTIONS
            }
        )

        pool_kwargs = {
            "host": settings.REDIS_HOST,
            "port": settings.REDIS_PORT,
            "db": settings.REDIS_DB,
            "decode_responses": True,
            "socket_timeout": settings.REDIS_SOCKET_TIMEOUT,
            "socket_connect_timeout": settings.REDIS_SOCKET_CONNECT_TIMEOUT,
            "max_connections": settings.REDIS_MAX_CONNECTIONS,
            "retry_on_timeout": True,
            "health_check_interval": 30
        }

        if settings.REDIS_SSL:
            pool_kwargs["connection_class"] = redis.SSLConnection
            pool_kwargs["ssl_cert_reqs"] = None

        if settings.REDIS_PASSWORD:
            pool_kwargs["password"] = settings.REDIS_PASSWORD

        RedisClient._pool = ConnectionPool(**pool_kwargs)
        RedisClient._client = redis.Redis(connection_pool=self._pool)

    def get_client(self) -> redis.Redis:
        """
        Get Redis client instance.

        Returns:
            redis.Redis: Thread-safe Redis client
        """
        if self._client is None:
            self._initialize_pool()
        return self._client

    def health_check(self) -> bool:
        try:
            return bool(self.get_client().ping())
        except Exception as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    def close(self):
        """
        Close connection pool (called on application shutdown).
        """
        if self._pool:
            self._pool.disconnect()
            logger.info("Redis connection pool closed")


redis_client_instance = RedisClient()


def get_redis() -> redis.Redis:
    return redis_client_instance.get_client()


def redis_health_check() -> bool:
    return redis_client_instance.health_check()
