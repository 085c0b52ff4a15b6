"""
Bearer token helpers.
Tokens are issued by the identity layer; this service only signs tokens for
tooling and verifies them on every protected request.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed access token.

    Args:
        data: Claims to embed (must include "sub")
        expires_delta: Token lifetime, defaults to ACCESS_TOKEN_EXPIRE_MINUTES

    Returns:
        Encoded JWT
    """
    to_encode = dict(data)
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and verify a token. Returns None when invalid or expired."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.PyJWTError as e:
        logger.info("Rejected access token", extra={"reason": str(e)})
        return None
