"""
Video router: listing, publishing, viewing, editing and deleting videos.
"""

import logging
from pathlib import Path
from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm.attributes import set_committed_value

from config import settings
from database import get_db
from models.user import User
from models.video import Video
from routers.auth_scope import get_current_user
from routers.envelope import api_response
from routers.schemas import serialize_video
from services.errors import Forbidden, InvalidArgument, NotFound, UploadFailed
from services.identity import require_text, require_valid_id
from services.media_gateway import (
    IMAGE_EXTENSIONS,
    IMAGE_MIME_PREFIXES,
    VIDEO_EXTENSIONS,
    VIDEO_MIME_PREFIXES,
    MediaGateway,
    UploadedMedia,
    discard_local,
    get_media_gateway,
    stage_upload,
)
from services.ownership import delete_owned, get_owned_or_404, get_visible_video, visible_to
from services.pagination import PageParams, page_params, paginate
from services.users import record_watch

router = APIRouter()
logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "created_at": Video.created_at,
    "views": Video.views,
    "title": Video.title,
    "duration": Video.duration,
}


async def _stage_video(file: UploadFile) -> Path:
    return await stage_upload(
        file,
        allowed_prefixes=VIDEO_MIME_PREFIXES,
        allowed_extensions=VIDEO_EXTENSIONS,
        max_bytes=settings.MAX_VIDEO_UPLOAD_BYTES,
        label="Video file",
    )


async def _stage_thumbnail(file: UploadFile) -> Path:
    return await stage_upload(
        file,
        allowed_prefixes=IMAGE_MIME_PREFIXES,
        allowed_extensions=IMAGE_EXTENSIONS,
        max_bytes=settings.MAX_IMAGE_UPLOAD_BYTES,
        label="Thumbnail",
    )


def _has_file(file: Optional[UploadFile]) -> bool:
    return file is not None and bool(file.filename)


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@router.get("")
async def get_all_videos(
    params: PageParams = Depends(page_params),
    query: str = "",
    sort_by: str = "created_at",
    sort_type: Literal["asc", "desc"] = "desc",
    user_id: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List videos with optional title search, owner filter and sorting."""
    sort_column = SORTABLE_FIELDS.get(sort_by)
    if sort_column is None:
        raise InvalidArgument(f"sort_by must be one of: {', '.join(sorted(SORTABLE_FIELDS))}")

    stmt = select(Video)
    if user_id:
        stmt = stmt.where(Video.owner_id == require_valid_id(user_id, "user"))
    if query.strip():
        stmt = stmt.where(Video.title.ilike(f"%{_escape_like(query.strip())}%", escape="\\"))
    stmt = stmt.where(visible_to(user.id))

    if sort_type == "asc":
        order_by = [sort_column.asc(), Video.id.asc()]
    else:
        order_by = [sort_column.desc(), Video.id.desc()]

    page = await paginate(db, stmt, params, order_by, serialize=serialize_video)
    return api_response(page.as_dict(), "Videos fetched successfully")


@router.post("", status_code=201)
async def publish_a_video(
    title: str = Form(...),
    description: str = Form(""),
    video_file: UploadFile = File(...),
    thumbnail: Optional[UploadFile] = File(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: MediaGateway = Depends(get_media_gateway),
):
    """Upload a video (and optional thumbnail) and create its record."""
    title = require_text(title, "Title")
    video_path: Optional[Path] = None
    thumbnail_path: Optional[Path] = None
    try:
        video_path = await _stage_video(video_file)
        if _has_file(thumbnail):
            thumbnail_path = await _stage_thumbnail(thumbnail)

        uploaded_video = await gateway.upload(video_path, "video")
        uploaded_thumbnail: Optional[UploadedMedia] = None
        if thumbnail_path is not None:
            try:
                uploaded_thumbnail = await gateway.upload(thumbnail_path, "image")
            except UploadFailed:
                await gateway.destroy(uploaded_video.public_id, uploaded_video.resource_type)
                raise
    finally:
        discard_local(video_path, thumbnail_path)

    video = Video(
        owner=user,
        title=title,
        description=description.strip() or None,
        video_file=uploaded_video.url,
        public_id=uploaded_video.public_id,
        resource_type=uploaded_video.resource_type or "video",
        thumbnail=uploaded_thumbnail.url if uploaded_thumbnail else None,
        thumbnail_public_id=uploaded_thumbnail.public_id if uploaded_thumbnail else None,
        duration=uploaded_video.duration,
        views=0,
        is_published=True,
    )
    db.add(video)
    await db.commit()
    logger.info("Video %s published by %s", video.id, user.id)
    return api_response(serialize_video(video), "Video published successfully", 201)


@router.get("/{video_id}")
async def get_video_by_id(
    video_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Fetch a video, count the view and record it in the viewer's history."""
    video_id = require_valid_id(video_id, "video")
    video = await get_visible_video(db, video_id, user.id)

    await db.execute(
        update(Video)
        .where(Video.id == video.id)
        .values(views=Video.views + 1)
        .execution_options(synchronize_session=False)
    )
    set_committed_value(video, "views", int(video.views or 0) + 1)
    payload = serialize_video(video)
    await db.commit()
    await record_watch(db, user.id, video.id)

    return api_response(payload, "Video fetched successfully")


@router.patch("/{video_id}")
async def update_video(
    video_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    thumbnail: Optional[UploadFile] = File(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: MediaGateway = Depends(get_media_gateway),
):
    """Edit title/description/thumbnail of a video the caller owns."""
    video_id = require_valid_id(video_id, "video")
    video = await get_owned_or_404(db, Video, video_id, user.id, "Video")

    previous_thumbnail_id: Optional[str] = None
    if _has_file(thumbnail):
        thumbnail_path = await _stage_thumbnail(thumbnail)
        try:
            uploaded = await gateway.upload(thumbnail_path, "image")
        finally:
            discard_local(thumbnail_path)
        previous_thumbnail_id = video.thumbnail_public_id
        video.thumbnail = uploaded.url
        video.thumbnail_public_id = uploaded.public_id

    if title is not None and title.strip():
        video.title = title.strip()
    if description is not None and description.strip():
        video.description = description.strip()

    await db.commit()
    if previous_thumbnail_id:
        await gateway.destroy(previous_thumbnail_id, "image")
    return api_response(serialize_video(video), "Video updated successfully")


@router.delete("/{video_id}")
async def delete_video(
    video_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: MediaGateway = Depends(get_media_gateway),
):
    """Delete a video the caller owns; storage cleanup is best-effort."""
    video_id = require_valid_id(video_id, "video")
    video = await delete_owned(db, Video, video_id, user.id, "Video")

    if not await gateway.destroy(video.public_id, video.resource_type or "video"):
        logger.warning("Video %s deleted but its media asset was not removed", video.id)
    if video.thumbnail_public_id:
        await gateway.destroy(video.thumbnail_public_id, "image")
    return api_response(None, "Video deleted successfully")


@router.patch("/toggle/publish/{video_id}")
async def toggle_publish_status(
    video_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Flip is_published. Missing video is 404; someone else's video is 403."""
    video_id = require_valid_id(video_id, "video")
    result = await db.execute(select(Video).where(Video.id == video_id))
    video = result.unique().scalar_one_or_none()
    if not video:
        raise NotFound("Video not found")
    if video.owner_id != user.id:
        raise Forbidden("You are not authorized to update this video")

    video.is_published = not video.is_published
    await db.commit()
    return api_response(serialize_video(video), "Video publish status toggled successfully")
