"""Channel dashboard router."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import get_db
from models.user import User
from models.video import Video
from routers.auth_scope import get_current_user
from routers.envelope import api_response
from routers.schemas import serialize_video
from services.dashboard import get_channel_stats, require_channel
from services.identity import require_valid_id
from services.pagination import PageParams, page_params, paginate

router = APIRouter()


@router.get("/stats/{channel_id}")
async def channel_stats(
    channel_id: str,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    channel_id = require_valid_id(channel_id, "channel")
    stats = await get_channel_stats(db, channel_id)
    return api_response(stats, "Channel stats fetched successfully")


@router.get("/videos/{channel_id}")
async def channel_videos(
    channel_id: str,
    params: PageParams = Depends(page_params),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """All of a channel's videos; unpublished ones only for the owner."""
    channel_id = require_valid_id(channel_id, "channel")
    await require_channel(db, channel_id)

    stmt = select(Video).where(Video.owner_id == channel_id)
    if channel_id != user.id:
        stmt = stmt.where(Video.is_published.is_(True))
    page = await paginate(
        db,
        stmt,
        params,
        [Video.created_at.desc(), Video.id.desc()],
        serialize=serialize_video,
    )
    return api_response(page.as_dict(), "Channel videos fetched successfully")
