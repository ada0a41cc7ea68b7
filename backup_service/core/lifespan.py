from contextlib import asynccontextmanager

from fastapi import FastAPI

from backup_service.core.config import settings
from backup_service.core.logger import logger
from backup_service.core.redis_client import redis_client_instance


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Logs which backup tables and buckets are configured, and releases the
    Redis pool on shutdown.
    """
    logger.info(
        f"Lifespan startup: {len(settings.BACKUP_TABLES)} tables, "
        f"{len(settings.STORAGE_BUCKETS)} storage buckets configured."
    )
    yield
    redis_client_instance.close()
    logger.info("Lifespan shutdown.")
