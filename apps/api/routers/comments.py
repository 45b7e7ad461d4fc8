"""Comment router."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import get_db
from models.comment import Comment
from models.user import User
from routers.auth_scope import get_current_user
from routers.envelope import api_response
from routers.schemas import serialize_comment
from services.identity import require_text, require_valid_id
from services.ownership import delete_owned, get_owned_or_404, get_visible_video
from services.pagination import PageParams, page_params, paginate

router = APIRouter()


class CommentRequest(BaseModel):
    content: str = ""


@router.get("/{video_id}")
async def get_video_comments(
    video_id: str,
    params: PageParams = Depends(page_params),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Newest-first page of a video's comments."""
    video_id = require_valid_id(video_id, "video")
    await get_visible_video(db, video_id, user.id)
    stmt = select(Comment).where(Comment.video_id == video_id)
    page = await paginate(
        db,
        stmt,
        params,
        [Comment.created_at.desc(), Comment.id.desc()],
        serialize=serialize_comment,
    )
    return api_response(page.as_dict(), "Comments fetched successfully")


@router.post("/{video_id}", status_code=201)
async def add_comment(
    video_id: str,
    request: CommentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    video_id = require_valid_id(video_id, "video")
    content = require_text(request.content, "Comment content")

    await get_visible_video(db, video_id, user.id)

    comment = Comment(video_id=video_id, owner=user, content=content)
    db.add(comment)
    await db.commit()
    return api_response(serialize_comment(comment), "Comment added successfully", 201)


@router.patch("/c/{comment_id}")
async def update_comment(
    comment_id: str,
    request: CommentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comment_id = require_valid_id(comment_id, "comment")
    content = require_text(request.content, "Comment content")

    comment = await get_owned_or_404(db, Comment, comment_id, user.id, "Comment")
    comment.content = content
    await db.commit()
    return api_response(serialize_comment(comment), "Comment updated successfully")


@router.delete("/c/{comment_id}")
async def delete_comment(
    comment_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comment_id = require_valid_id(comment_id, "comment")
    comment = await delete_owned(db, Comment, comment_id, user.id, "Comment")
    return api_response(serialize_comment(comment), "Comment deleted successfully")
