"""Channel dashboard aggregates."""

from typing import Any, Dict

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.like import Like
from models.subscription import Subscription
from models.user import User
from models.video import Video
from services.errors import NotFound


async def require_channel(db: AsyncSession, channel_id: str) -> User:
    result = await db.execute(select(User).where(User.id == channel_id))
    channel = result.scalar_one_or_none()
    if not channel:
        raise NotFound("Channel not found")
    return channel


async def get_channel_stats(db: AsyncSession, channel_id: str) -> Dict[str, Any]:
    """Totals across a channel's videos, subscribers and video likes."""
    await require_channel(db, channel_id)

    video_totals = await db.execute(
        select(func.count(Video.id), func.coalesce(func.sum(Video.views), 0)).where(
            Video.owner_id == channel_id
        )
    )
    total_videos, total_views = video_totals.one()

    total_subscribers = await db.scalar(
        select(func.count(Subscription.id)).where(Subscription.channel_id == channel_id)
    )
    total_likes = await db.scalar(
        select(func.count(Like.id))
        .join(Video, Like.video_id == Video.id)
        .where(Video.owner_id == channel_id)
    )

    return {
        "total_videos": int(total_videos or 0),
        "total_views": int(total_views or 0),
        "total_subscribers": int(total_subscribers or 0),
        "total_likes": int(total_likes or 0),
    }
