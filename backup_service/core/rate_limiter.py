# core/rate_limiter.py
from slowapi import Limiter
from slowapi.util import get_remote_address

from backup_service.core.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
limit_param = f"{settings.RATE_LIMIT_MIN}/minute"
