"""Authentication dependencies resolving the request's user from cookie or bearer token."""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import get_db
from models.user import User
from services.errors import InvalidToken, Unauthenticated
from services.session_token import decode_access_token


ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"

auth_scheme = HTTPBearer(auto_error=False)


def extract_access_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[str]:
    """Cookie wins over the Authorization header."""
    cookie_token = (request.cookies.get(ACCESS_TOKEN_COOKIE) or "").strip()
    if cookie_token:
        return cookie_token
    if credentials and credentials.scheme.lower() == "bearer":
        return credentials.credentials.strip() or None
    return None


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the authenticated user or reject the request with 401."""
    token = extract_access_token(request, credentials)
    if not token:
        raise Unauthenticated()

    payload = decode_access_token(token)

    result = await db.execute(select(User).where(User.id == str(payload["sub"])))
    user = result.scalar_one_or_none()
    if not user:
        # Same answer as a bad signature so account existence is not leaked.
        raise InvalidToken("Invalid access token")

    request.state.user = user
    return user
