"""Like model covering videos, comments and tweets."""

from sqlalchemy import CheckConstraint, Column, String, DateTime, ForeignKey, UniqueConstraint
import uuid

from database import Base, utcnow


LIKE_TARGET_TYPES = ("video", "comment", "tweet")


class Like(Base):
    """One row per (user, target); presence means liked."""

    __tablename__ = "likes"
    __table_args__ = (
        CheckConstraint(
            "(CASE WHEN video_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN comment_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN tweet_id IS NULL THEN 0 ELSE 1 END) = 1",
            name="ck_likes_single_target",
        ),
        CheckConstraint("target_type IN ('video', 'comment', 'tweet')", name="ck_likes_target_type"),
        UniqueConstraint("liked_by", "video_id", name="uq_likes_user_video"),
        UniqueConstraint("liked_by", "comment_id", name="uq_likes_user_comment"),
        UniqueConstraint("liked_by", "tweet_id", name="uq_likes_user_tweet"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    liked_by = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    target_type = Column(String, nullable=False)
    video_id = Column(String, ForeignKey("videos.id", ondelete="CASCADE"), nullable=True, index=True)
    comment_id = Column(String, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True, index=True)
    tweet_id = Column(String, ForeignKey("tweets.id", ondelete="CASCADE"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
