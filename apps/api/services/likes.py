"""Like toggling for videos, comments and tweets."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.comment import Comment
from models.like import LIKE_TARGET_TYPES, Like
from models.tweet import Tweet
from models.video import Video
from services.errors import Conflict, NotFound
from services.ownership import get_visible_video, visible_to

logger = logging.getLogger(__name__)

_TARGETS: Dict[str, tuple] = {
    "video": ("video_id", "Video"),
    "comment": ("comment_id", "Comment"),
    "tweet": ("tweet_id", "Tweet"),
}


async def _require_target(db: AsyncSession, target_type: str, target_id: str, viewer_id: str) -> None:
    """Targets hanging off someone else's unpublished video do not exist for the viewer."""
    if target_type == "video":
        await get_visible_video(db, target_id, viewer_id)
        return

    if target_type == "comment":
        stmt = (
            select(Comment.id)
            .join(Video, Comment.video_id == Video.id)
            .where(Comment.id == target_id, visible_to(viewer_id))
        )
    else:
        stmt = select(Tweet.id).where(Tweet.id == target_id)
    if (await db.execute(stmt)).scalar_one_or_none() is None:
        raise NotFound(f"{_TARGETS[target_type][1]} not found")


async def _find_like(db: AsyncSession, user_id: str, column_name: str, target_id: str) -> Optional[Like]:
    result = await db.execute(
        select(Like).where(Like.liked_by == user_id, getattr(Like, column_name) == target_id)
    )
    return result.scalar_one_or_none()


async def toggle_like(db: AsyncSession, user_id: str, target_type: str, target_id: str) -> bool:
    """Flip the like state for (user, target) and return the new state."""
    if target_type not in LIKE_TARGET_TYPES:
        raise ValueError(f"Unsupported like target: {target_type}")
    column_name, label = _TARGETS[target_type]

    await _require_target(db, target_type, target_id, user_id)

    like = await _find_like(db, user_id, column_name, target_id)
    if like:
        await db.delete(like)
        await db.commit()
        return False

    db.add(Like(liked_by=user_id, target_type=target_type, **{column_name: target_id}))
    try:
        await db.commit()
    except IntegrityError as exc:
        # Uniqueness on (liked_by, target) rejected a concurrent duplicate toggle.
        await db.rollback()
        logger.info("Concurrent like toggle rejected user=%s %s=%s", user_id, target_type, target_id)
        raise Conflict(f"{label} like is already being updated") from exc
    return True


async def get_liked_videos(db: AsyncSession, user_id: str) -> List[Video]:
    result = await db.execute(
        select(Video)
        .join(Like, Like.video_id == Video.id)
        .where(Like.liked_by == user_id, visible_to(user_id))
        .order_by(Like.created_at.desc(), Like.id.desc())
    )
    return list(result.unique().scalars().all())
