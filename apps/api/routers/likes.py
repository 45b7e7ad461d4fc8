"""Like router: toggle likes on videos, comments and tweets."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models.user import User
from routers.auth_scope import get_current_user
from routers.envelope import api_response
from routers.schemas import serialize_video
from services.errors import NotFound
from services.identity import require_valid_id
from services.likes import get_liked_videos, toggle_like

router = APIRouter()


async def _toggle(db: AsyncSession, user: User, target_type: str, raw_id: str) -> dict:
    target_id = require_valid_id(raw_id, target_type)
    liked = await toggle_like(db, user.id, target_type, target_id)
    label = target_type.capitalize()
    message = f"{label} liked successfully" if liked else f"{label} unliked successfully"
    return api_response({"target_type": target_type, "target_id": target_id, "liked": liked}, message)


@router.post("/toggle/v/{video_id}")
async def toggle_video_like(
    video_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _toggle(db, user, "video", video_id)


@router.post("/toggle/c/{comment_id}")
async def toggle_comment_like(
    comment_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _toggle(db, user, "comment", comment_id)


@router.post("/toggle/t/{tweet_id}")
async def toggle_tweet_like(
    tweet_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _toggle(db, user, "tweet", tweet_id)


@router.get("/videos")
async def liked_videos(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    videos = await get_liked_videos(db, user.id)
    if not videos:
        raise NotFound("No liked videos found")
    return api_response([serialize_video(video) for video in videos], "Liked videos fetched successfully")
