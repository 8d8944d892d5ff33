"""SQLAlchemy ORM models for listings, their images and comments."""
from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.sql import expression, func

from swapboard.database import Base
from .base import TimestampMixin, utcnow


class Post(TimestampMixin, Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    offer_type = Column(String(16), nullable=False, index=True)
    content_type = Column(String(16), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(100), nullable=True, index=True)

    # Item fields
    condition = Column(String(32), nullable=True)
    looking_for = Column(Text, nullable=True)
    can_offer = Column(Text, nullable=True)

    # Service fields
    experience_level = Column(String(32), nullable=True)
    availability = Column(Text, nullable=True)
    rate_type = Column(String(16), nullable=True)
    rate_amount = Column(String(64), nullable=True)
    rate_notes = Column(Text, nullable=True)

    contact_method = Column(String(32), nullable=False, default="email")
    contact_info = Column(String(255), nullable=False)
    is_anonymous = Column(Boolean, nullable=False, server_default=expression.true(), default=True)
    anonymous_id = Column(String(64), nullable=True, index=True)
    user_id = Column(Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True)

    image_url = Column(String(1024), nullable=True)
    likes = Column(Integer, nullable=False, default=0, server_default="0")
    comments = Column(Integer, nullable=False, default=0, server_default="0")


class PostImage(Base):
    __tablename__ = "post_images"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    image_url = Column(String(1024), nullable=False)
    storage_path = Column(String(1024), nullable=True)
    order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


class Comment(Base):
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    user_id = Column(Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True)
    user_name = Column(String(150), nullable=True)
    anonymous_id = Column(String(64), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


__all__ = ["Post", "PostImage", "Comment"]
