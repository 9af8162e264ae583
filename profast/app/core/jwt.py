"""
JWT token utilities and the bearer-token identity verifier.

The rest of the application only sees a CallerIdentity; how a token is
checked is confined to this module.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from pydantic import BaseModel
from profast.app.core.config import settings
from profast.app.core.exceptions import UnauthorizedError


class CallerIdentity(BaseModel):
    """Verified caller extracted from a bearer token."""
    email: str
    role: Optional[str] = None
    claims: Dict[str, Any] = {}


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Data payload to encode in the token (should include: sub, email)
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string

    Example payload:
        {
            "sub": "sender@example.com",
            "email": "sender@example.com",
            "role": "user",
            "exp": 1234567890
        }
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)

    return encoded_jwt


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token string to decode

    Returns:
        Decoded token payload if valid, None otherwise
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        return payload
    except JWTError:
        return None


class JWTIdentityVerifier:
    """Verifies bearer tokens and turns their claims into a CallerIdentity."""

    def verify(self, token: Optional[str]) -> CallerIdentity:
        if not token:
            raise UnauthorizedError("Missing bearer token")

        payload = decode_access_token(token)
        if payload is None:
            raise UnauthorizedError("Could not validate credentials")

        email = payload.get("email") or payload.get("sub")
        if not email:
            raise UnauthorizedError("Invalid token payload")

        return CallerIdentity(email=email.lower(), role=payload.get("role"), claims=payload)


identity_verifier = JWTIdentityVerifier()
