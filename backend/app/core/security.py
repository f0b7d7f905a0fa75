"""
Identity lookup from bearer tokens.

Tokens are issued by the authentication service; this module only decodes
them to find out who is calling.
"""

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger
from pydantic import BaseModel

from app.core.config import settings

bearer_scheme = HTTPBearer(auto_error=False)


class Identity(BaseModel):
    """Authenticated caller."""

    user_id: int
    username: str = "Anonymous"


def decode_identity(token: str) -> Identity | None:
    """
    Decode a JWT access token.

    Returns:
        Identity, or None if the token is invalid or expired
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Rejected expired access token")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected invalid access token: {e}")
        return None

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        logger.warning("Access token has no usable subject")
        return None

    username = payload.get("name") or payload.get("username") or "Anonymous"
    return Identity(user_id=user_id, username=username)


async def get_optional_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Identity | None:
    """Resolve the caller if a valid token was sent."""
    if credentials is None:
        return None
    return decode_identity(credentials.credentials)


async def get_current_identity(
    identity: Identity | None = Depends(get_optional_identity),
) -> Identity:
    """Resolve the caller or reject with 401."""
    if identity is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return identity


def create_access_token(user_id: int, username: str) -> str:
    """Issue a token (used by tests and local tooling)."""
    return jwt.encode(
        {"sub": str(user_id), "name": username},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )
