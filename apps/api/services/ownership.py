"""Owner-scoped lookups for mutating comments, tweets and videos, and video visibility."""

from typing import Type, TypeVar

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import Base
from models.video import Video
from services.errors import NotFound, NotFoundOrUnauthorized

ModelT = TypeVar("ModelT", bound=Base)


async def get_owned_or_404(
    db: AsyncSession,
    model: Type[ModelT],
    resource_id: str,
    owner_id: str,
    label: str,
) -> ModelT:
    """Fetch a row matching both id and owner.

    A foreign row and a missing row produce the same NotFoundOrUnauthorized.
    """
    result = await db.execute(
        select(model).where(model.id == resource_id, model.owner_id == owner_id)
    )
    resource = result.unique().scalar_one_or_none()
    if resource is None:
        raise NotFoundOrUnauthorized(f"{label} not found or you are not authorized to modify it")
    return resource


async def delete_owned(
    db: AsyncSession,
    model: Type[ModelT],
    resource_id: str,
    owner_id: str,
    label: str,
) -> ModelT:
    resource = await get_owned_or_404(db, model, resource_id, owner_id, label)
    await db.delete(resource)
    await db.commit()
    return resource


def visible_to(viewer_id: str):
    """Published videos plus the viewer's own unpublished ones."""
    return or_(Video.is_published.is_(True), Video.owner_id == viewer_id)


async def get_visible_video(db: AsyncSession, video_id: str, viewer_id: str) -> Video:
    """Unpublished videos only exist for their owner; everyone else gets NotFound."""
    result = await db.execute(select(Video).where(Video.id == video_id, visible_to(viewer_id)))
    video = result.unique().scalar_one_or_none()
    if video is None:
        raise NotFound("Video not found")
    return video
