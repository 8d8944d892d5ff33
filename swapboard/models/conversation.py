"""SQLAlchemy ORM models for two-party conversations and their messages.

Rows written before anonymous messaging existed only carry ``user1_id`` and
``user2_id``. Newer rows describe each side with an account id *or* an
anonymous id, plus the display name captured when the thread was opened.
"""
from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.sql import expression, func

from swapboard.database import Base
from .base import utcnow


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user1_id = Column(Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True)
    user2_id = Column(Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True)
    anonymous1_id = Column(String(64), nullable=True, index=True)
    anonymous2_id = Column(String(64), nullable=True, index=True)
    participant1_name = Column(String(150), nullable=True)
    participant2_name = Column(String(150), nullable=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="SET NULL"), nullable=True, index=True)
    post_title = Column(String(200), nullable=True)
    last_message_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True)
    sender_anonymous_id = Column(String(64), nullable=True, index=True)
    sender_name = Column(String(150), nullable=True)
    content = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, server_default=expression.false(), default=False)
    read_by_recipient = Column(Boolean, nullable=False, server_default=expression.false(), default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


__all__ = ["Conversation", "Message"]
