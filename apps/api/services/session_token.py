"""Access/refresh token issuance, verification and rotation."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.user import User
from services.errors import InvalidToken, NotFound

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str


def create_access_token(user: User, expires_minutes: Optional[int] = None) -> str:
    """Create a short-lived signed access token carrying the user's public identity."""
    now = datetime.now(timezone.utc)
    ttl_minutes = int(expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES or 60)
    claims: Dict[str, Any] = {
        "sub": user.id,
        "type": ACCESS_TOKEN_TYPE,
        "username": user.username,
        "email": user.email,
        "full_name": user.full_name,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=max(ttl_minutes, 1))).timestamp()),
    }
    return jwt.encode(claims, settings.ACCESS_TOKEN_SECRET, algorithm=settings.JWT_ALGORITHM)


def create_refresh_token(user_id: str, expires_days: Optional[int] = None) -> str:
    """Create a long-lived refresh token; the jti makes every issuance unique."""
    now = datetime.now(timezone.utc)
    ttl_days = int(expires_days or settings.REFRESH_TOKEN_EXPIRE_DAYS or 10)
    claims: Dict[str, Any] = {
        "sub": user_id,
        "type": REFRESH_TOKEN_TYPE,
        "jti": uuid.uuid4().hex,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(days=max(ttl_days, 1))).timestamp()),
    }
    return jwt.encode(claims, settings.REFRESH_TOKEN_SECRET, algorithm=settings.JWT_ALGORITHM)


def _decode(token: str, secret: str, expected_type: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        raise InvalidToken(f"Invalid or expired {expected_type} token") from exc

    token_type = str(payload.get("type", "")).strip()
    if token_type != expected_type:
        raise InvalidToken(f"Invalid {expected_type} token type")

    subject = str(payload.get("sub", "")).strip()
    if not subject:
        raise InvalidToken(f"{expected_type.capitalize()} token missing subject")

    return payload


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode and validate a signed access token."""
    return _decode(token, settings.ACCESS_TOKEN_SECRET, ACCESS_TOKEN_TYPE)


def decode_refresh_token(token: str) -> Dict[str, Any]:
    """Decode and validate a signed refresh token (signature, expiry, type only)."""
    return _decode(token, settings.REFRESH_TOKEN_SECRET, REFRESH_TOKEN_TYPE)


async def issue_token_pair(db: AsyncSession, user_id: str) -> TokenPair:
    """Issue a new pair and persist the refresh token, replacing any earlier one."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFound("User not found")

    pair = TokenPair(
        access_token=create_access_token(user),
        refresh_token=create_refresh_token(user.id),
    )
    user.refresh_token = pair.refresh_token
    await db.commit()
    return pair


async def rotate_from_refresh_token(db: AsyncSession, refresh_token: str) -> TokenPair:
    """Exchange the currently stored refresh token for a fresh pair."""
    payload = decode_refresh_token(refresh_token)

    result = await db.execute(select(User).where(User.id == str(payload["sub"])))
    user = result.scalar_one_or_none()
    if not user:
        raise InvalidToken("Invalid refresh token")

    if not user.refresh_token or user.refresh_token != refresh_token:
        logger.warning("Rejected stale refresh token for user %s", user.id)
        raise InvalidToken("Refresh token is expired or already used")

    pair = await issue_token_pair(db, user.id)
    logger.info("Rotated refresh token for user %s", user.id)
    return pair


async def revoke(db: AsyncSession, user_id: str) -> None:
    """Clear the stored refresh token. Safe to call repeatedly."""
    await db.execute(update(User).where(User.id == user_id).values(refresh_token=None))
    await db.commit()
