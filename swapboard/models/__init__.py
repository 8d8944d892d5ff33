"""Convenience exports for ORM models."""
from .conversation import Conversation, Message
from .notification import UserNotification
from .post import Comment, Post, PostImage
from .profile import Profile

__all__ = [
    "Comment",
    "Conversation",
    "Message",
    "Post",
    "PostImage",
    "Profile",
    "UserNotification",
]
