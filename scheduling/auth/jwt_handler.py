from datetime import datetime, timedelta, timezone

import jwt

from scheduling.core import config

DEFAULT_EXPIRES_MINUTES = 60


def create_access_token(profile_id: int, expires_minutes: int | None = None) -> str:
    """Issue a token the way the identity provider does. Used by tooling and tests."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes or DEFAULT_EXPIRES_MINUTES)
    payload = {"sub": str(profile_id), "exp": expire, "iat": datetime.now(timezone.utc)}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
