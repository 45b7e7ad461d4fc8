"""User model."""

from sqlalchemy import Column, String, DateTime, Text
import uuid

from database import Base, utcnow


class User(Base):
    """Registered account; doubles as a channel."""

    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String, unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    full_name = Column(String, nullable=False)
    avatar = Column(String, nullable=False)
    avatar_public_id = Column(String, nullable=True)
    cover_image = Column(String, nullable=True)
    cover_image_public_id = Column(String, nullable=True)
    password_hash = Column(String, nullable=False)
    # Single active refresh token; a new login overwrites it.
    refresh_token = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)
