# core/auth.py
"""
Admin authentication for the backup trigger endpoints.

JWT (HS256) with issuer/audience checks, an admin role claim and
Redis-backed JTI replay protection. The backup jobs never see the token:
they only receive the caller's user id as `triggered_by`.
"""

from datetime import timedelta
from typing import Optional

import jwt
from fastapi import HTTPException, Request, status

from backup_service.core.config import settings
from backup_service.core.logger import logger
from backup_service.services.token_cache_service import token_cache_service


class AdminPrincipal:
    """
    Authenticated operator extracted from the JWT.
    """

    def __init__(self, user_id: Optional[str], role: str, jti: Optional[str], request_id: str):
        self.user_id = user_id
        self.role = role
        self.jti = jti
        self.request_id = request_id


def _reject(code: int, detail: str, request_id: str) -> HTTPException:
    return HTTPException(
        status_code=code,
        detail=detail,
        headers={"x-request-id": request_id},
    )


async def verify_admin_token(request: Request) -> AdminPrincipal:
    """
    Verify the bearer token and require an admin role.

    Raises:
        HTTPException: 401 for a missing/invalid/expired/replayed token,
            403 when the caller is not an admin.
    """
    request_id = request.headers.get("x-request-id", "unknown")
    authorization = request.headers.get("Authorization")
    if not authorization or not authorization.startswith("Bearer "):
        raise _reject(status.HTTP_401_UNAUTHORIZED, "Unauthorized", request_id)

    token = authorization.split(" ", 1)[1]

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
            leeway=timedelta(seconds=settings.JWT_LEEWAY_SECONDS)
        )
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token", extra={"request_id": request_id, "auth_result": "expired"})
        raise _reject(status.HTTP_401_UNAUTHORIZED, "Token has expired", request_id)
    except jwt.InvalidTokenError as e:
        logger.warning(
            "Invalid token",
            extra={"request_id": request_id, "auth_result": "invalid", "reason": str(e)}
        )
        raise _reject(status.HTTP_401_UNAUTHORIZED, "Unauthorized: Invalid token", request_id)

    role = payload.get(settings.JWT_ROLE_CLAIM)
    if role not in settings.ADMIN_ROLES:
        logger.warning(
            "Non-admin caller rejected",
            extra={"request_id": request_id, "auth_result": "forbidden", "sub": payload.get("sub")}
        )
        raise _reject(status.HTTP_403_FORBIDDEN, "Forbidden: Admin access required", request_id)

    jti = payload.get("jti")
    if settings.JWT_REQUIRE_JTI:
        if not jti:
            raise _reject(status.HTTP_401_UNAUTHORIZED, "Token missing JTI claim", request_id)
        if token_cache_service.is_jti_used(jti):
            raise _reject(status.HTTP_401_UNAUTHORIZED, "Token has already been used", request_id)
        token_cache_service.mark_jti_used(jti)

    logger.info(
        "Authentication successful",
        extra={"request_id": request_id, "auth_result": "success", "sub": payload.get("sub")}
    )
    return AdminPrincipal(
        user_id=payload.get("sub"),
        role=role,
        jti=jti,
        request_id=request_id,
    )
