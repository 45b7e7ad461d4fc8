"""Video model for published media."""

from sqlalchemy import Boolean, Column, String, DateTime, Float, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
import uuid

from database import Base, utcnow


class Video(Base):
    """Video uploaded by a channel owner."""

    __tablename__ = "videos"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    video_file = Column(String, nullable=False)
    public_id = Column(String, nullable=True)
    resource_type = Column(String, nullable=False, default="video")
    thumbnail = Column(String, nullable=True)
    thumbnail_public_id = Column(String, nullable=True)
    duration = Column(Float, nullable=True)
    views = Column(Integer, nullable=False, default=0)
    is_published = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    # Relationships
    owner = relationship("User", lazy="joined")
