"""
Security Utilities

Bearer tokens are issued by the platform's auth service. The progress
store only verifies them and reads the learner ID from the subject claim.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from app.core.config import settings


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign a token for a learner.

    Used by tests and local tooling; production tokens come from the auth
    service with the same secret and algorithm.

    Args:
        user_id: Learner ID stored in the "sub" claim.
        expires_delta: Lifetime, ACCESS_TOKEN_EXPIRE_MINUTES by default.

    Returns:
        str: Encoded JWT.
    """
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {"sub": str(user_id), "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def get_token_subject(token: str) -> Optional[str]:
    """
    Verify a bearer token and return its learner ID.

    Returns:
        The "sub" claim, or None if the token is invalid, expired or has
        no subject.
    """
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    subject = claims.get("sub")
    return str(subject) if subject else None
