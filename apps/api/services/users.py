"""Account lifecycle, channel profile and watch-history queries."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import utcnow
from models.subscription import Subscription
from models.user import User
from models.video import Video
from models.watch_history import WatchHistory
from services.errors import Conflict, InvalidArgument, InvalidToken, NotFound, UploadFailed
from services.identity import (
    is_valid_email,
    is_valid_username,
    normalize_email,
    normalize_username,
    require_text,
)
from services.media_gateway import MediaGateway, UploadedMedia
from services.passwords import hash_password, verify_password

logger = logging.getLogger(__name__)


async def _find_by_username_or_email(
    db: AsyncSession,
    username: Optional[str],
    email: Optional[str],
) -> Optional[User]:
    clauses = []
    if username:
        clauses.append(User.username == username)
    if email:
        clauses.append(User.email == email)
    if not clauses:
        return None
    result = await db.execute(select(User).where(or_(*clauses)).limit(1))
    return result.scalars().first()


async def register_user(
    db: AsyncSession,
    gateway: MediaGateway,
    *,
    full_name: str,
    email: str,
    username: str,
    password: str,
    avatar_path: Path,
    cover_image_path: Optional[Path] = None,
) -> User:
    """Create an account after uploading its avatar (and optional cover image).

    The uploads happen before the insert; if the insert fails the uploaded
    assets are destroyed best-effort, which leaves a small non-atomic window.
    """
    full_name = require_text(full_name, "Full name")
    username = normalize_username(username)
    email = normalize_email(email)
    if not is_valid_username(username):
        raise InvalidArgument("Username must be 3-30 characters of letters, digits, '.', '_' or '-'")
    if not is_valid_email(email):
        raise InvalidArgument("Invalid email address")
    password_hash = hash_password(password or "")

    if await _find_by_username_or_email(db, username, email):
        raise Conflict("User already exists with this username or email")

    avatar = await gateway.upload(avatar_path, "image")
    cover: Optional[UploadedMedia] = None
    if cover_image_path is not None:
        try:
            cover = await gateway.upload(cover_image_path, "image")
        except UploadFailed:
            await gateway.destroy(avatar.public_id, avatar.resource_type)
            raise

    user = User(
        username=username,
        email=email,
        full_name=full_name,
        avatar=avatar.url,
        avatar_public_id=avatar.public_id,
        cover_image=cover.url if cover else None,
        cover_image_public_id=cover.public_id if cover else None,
        password_hash=password_hash,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        await gateway.destroy(avatar.public_id, avatar.resource_type)
        if cover:
            await gateway.destroy(cover.public_id, cover.resource_type)
        raise Conflict("User already exists with this username or email") from exc

    logger.info("Registered user %s", user.id)
    return user


async def authenticate(
    db: AsyncSession,
    *,
    username: Optional[str],
    email: Optional[str],
    password: str,
) -> User:
    """Check credentials. Unknown account -> NotFound, wrong password -> InvalidToken."""
    username = normalize_username(username) or None
    email = normalize_email(email) or None
    if not username and not email:
        raise InvalidArgument("Please enter either username or email")
    if not password:
        raise InvalidArgument("Password is required")

    user = await _find_by_username_or_email(db, username, email)
    if not user:
        raise NotFound("User not found")
    if not verify_password(password, user.password_hash):
        raise InvalidToken("Invalid user credentials")
    return user


async def change_password(
    db: AsyncSession,
    user: User,
    *,
    old_password: str,
    new_password: str,
    confirm_password: str,
) -> None:
    if not old_password or not new_password or not confirm_password:
        raise InvalidArgument("Please provide all fields (old_password, new_password, confirm_password)")
    if new_password != confirm_password:
        raise InvalidArgument("New password and confirm password do not match")
    if not verify_password(old_password, user.password_hash):
        raise InvalidToken("Invalid old password")

    user.password_hash = hash_password(new_password)
    await db.commit()
    logger.info("Password changed for user %s", user.id)


async def update_account(db: AsyncSession, user: User, *, full_name: str, email: str) -> User:
    full_name = require_text(full_name, "Full name")
    email = normalize_email(email)
    if not is_valid_email(email):
        raise InvalidArgument("Invalid email address")

    if email != user.email:
        taken = await db.execute(select(User.id).where(User.email == email, User.id != user.id))
        if taken.scalar_one_or_none():
            raise Conflict("Email is already in use")

    user.full_name = full_name
    user.email = email
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise Conflict("Email is already in use") from exc
    return user


async def replace_image(
    db: AsyncSession,
    gateway: MediaGateway,
    user: User,
    local_path: Path,
    field: str,
) -> User:
    """Upload a new avatar/cover image and drop the previous asset best-effort."""
    if field not in {"avatar", "cover_image"}:
        raise ValueError(f"Unsupported image field: {field}")

    uploaded = await gateway.upload(local_path, "image")
    previous_public_id = getattr(user, f"{field}_public_id")

    setattr(user, field, uploaded.url)
    setattr(user, f"{field}_public_id", uploaded.public_id)
    await db.commit()

    if previous_public_id and previous_public_id != uploaded.public_id:
        await gateway.destroy(previous_public_id, "image")
    return user


async def get_channel_profile(db: AsyncSession, username: str, viewer_id: str) -> Dict[str, Any]:
    username = normalize_username(username)
    if not username:
        raise InvalidArgument("Please provide username")

    result = await db.execute(select(User).where(User.username == username))
    channel = result.scalar_one_or_none()
    if not channel:
        raise NotFound("Channel does not exist")

    subscribers_count = await db.scalar(
        select(func.count(Subscription.id)).where(Subscription.channel_id == channel.id)
    )
    subscribed_to_count = await db.scalar(
        select(func.count(Subscription.id)).where(Subscription.subscriber_id == channel.id)
    )
    is_subscribed = await db.scalar(
        select(func.count(Subscription.id)).where(
            Subscription.channel_id == channel.id,
            Subscription.subscriber_id == viewer_id,
        )
    )

    return {
        "id": channel.id,
        "username": channel.username,
        "full_name": channel.full_name,
        "email": channel.email,
        "avatar": channel.avatar,
        "cover_image": channel.cover_image,
        "subscribers_count": int(subscribers_count or 0),
        "channels_subscribed_to_count": int(subscribed_to_count or 0),
        "is_subscribed": bool(is_subscribed),
    }


async def record_watch(db: AsyncSession, user_id: str, video_id: str) -> None:
    """Append a video to the front of the user's watch history."""
    result = await db.execute(
        select(WatchHistory).where(WatchHistory.user_id == user_id, WatchHistory.video_id == video_id)
    )
    entry = result.unique().scalar_one_or_none()
    if entry:
        entry.watched_at = utcnow()
    else:
        db.add(WatchHistory(user_id=user_id, video_id=video_id))
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent request already recorded this pair.
        await db.rollback()


async def get_watch_history(db: AsyncSession, user_id: str) -> List[Video]:
    result = await db.execute(
        select(WatchHistory)
        .where(WatchHistory.user_id == user_id)
        .order_by(WatchHistory.watched_at.desc(), WatchHistory.id.desc())
    )
    return [entry.video for entry in result.unique().scalars().all() if entry.video is not None]
