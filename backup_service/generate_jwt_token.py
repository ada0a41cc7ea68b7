#!/usr/bin/env python3
"""
Admin JWT Generator for the backup trigger endpoints
Usage: python -m backup_service.generate_jwt_token <user-id> [role]
"""
import sys
import uuid
import jwt
from datetime import datetime, timezone, timedelta
from typing import Optional

from backup_service.core.config import settings

TOKEN_TTL_MINUTES = 5


def generate_admin_token(
    user_id: str,
    role: str = "admin",
    ttl_minutes: int = TOKEN_TTL_MINUTES,
    jti: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """Generate a short-lived token accepted by verify_admin_token"""
    now = now or datetime.now(timezone.utc)

    payload = {
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
        "sub": user_id,
        settings.JWT_ROLE_CLAIM: role,
        "exp": int((now + timedelta(minutes=ttl_minutes)).timestamp()),
        "iat": int(now.timestamp()),
        "jti": jti or f"token-{uuid.uuid4()}"
    }

    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    token = generate_admin_token(*sys.argv[1:3])
    print("=" * 80)
    print(f"Token: {token}")
    print("=" * 80)
    print(f"Expires in {TOKEN_TTL_MINUTES} minutes")
    print(f"Authorization: Bearer {token}")
