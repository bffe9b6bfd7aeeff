"""
JWT helpers for admin and resident bearer tokens.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from .config import settings
from .logger import logger


def create_access_token(
    subject: str,
    role: str,
    expires_minutes: Optional[int] = None,
    **claims: Any
) -> str:
    """Create a signed access token for an admin or resident."""
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES
    )
    payload = {
        "sub": subject,
        "role": role,
        "type": "access",
        "exp": expire,
        **claims,
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and validate an access token.

    Returns:
        The token payload, or None if the token is invalid or expired
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired access token")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected invalid access token: {e}")
        return None

    if payload.get("type") != "access":
        return None
    return payload
