"""Response schemas shared by the resource routers. Credential fields never appear here."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from models.comment import Comment
from models.tweet import Tweet
from models.user import User
from models.video import Video


class OwnerSummary(BaseModel):
    id: str
    username: str
    full_name: str
    avatar: str


class UserResponse(BaseModel):
    id: str
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class VideoResponse(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    video_file: str
    thumbnail: Optional[str] = None
    duration: Optional[float] = None
    views: int = 0
    is_published: bool = True
    owner_id: str
    owner: Optional[OwnerSummary] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CommentResponse(BaseModel):
    id: str
    video_id: str
    content: str
    owner_id: str
    owner: Optional[OwnerSummary] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TweetResponse(BaseModel):
    id: str
    content: str
    owner_id: str
    owner: Optional[OwnerSummary] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def serialize_owner(user: Optional[User]) -> Optional[OwnerSummary]:
    if user is None:
        return None
    return OwnerSummary(id=user.id, username=user.username, full_name=user.full_name, avatar=user.avatar)


def serialize_user(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        full_name=user.full_name,
        avatar=user.avatar,
        cover_image=user.cover_image or None,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def serialize_video(video: Video) -> VideoResponse:
    return VideoResponse(
        id=video.id,
        title=video.title,
        description=video.description,
        video_file=video.video_file,
        thumbnail=video.thumbnail,
        duration=video.duration,
        views=int(video.views or 0),
        is_published=bool(video.is_published),
        owner_id=video.owner_id,
        owner=serialize_owner(video.owner),
        created_at=video.created_at,
        updated_at=video.updated_at,
    )


def serialize_comment(comment: Comment) -> CommentResponse:
    return CommentResponse(
        id=comment.id,
        video_id=comment.video_id,
        content=comment.content,
        owner_id=comment.owner_id,
        owner=serialize_owner(comment.owner),
        created_at=comment.created_at,
        updated_at=comment.updated_at,
    )


def serialize_tweet(tweet: Tweet) -> TweetResponse:
    return TweetResponse(
        id=tweet.id,
        content=tweet.content,
        owner_id=tweet.owner_id,
        owner=serialize_owner(tweet.owner),
        created_at=tweet.created_at,
        updated_at=tweet.updated_at,
    )
