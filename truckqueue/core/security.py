"""
Truck Queue — Security helper (JWT decode only, shared secret)

Tokens are issued by the identity provider. Claims used here:
  sub         user id (the order owner)
  is_admin    admin-scoped routes
"""
from jose import jwt, JWTError
from typing import Any
from truckqueue.core.config import get_settings

settings = get_settings()


def decode_token(token: str) -> dict[str, Any]:
    """Decode and validate a JWT. Raises JWTError on failure."""
    claims = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    if not claims.get("sub"):
        raise JWTError("Token has no subject.")
    return claims
