"""Aggregate router exports."""
from .auth import router as auth_router
from .comments import router as comments_router
from .messages import router as messages_router
from .notifications import router as notifications_router
from .pages import router as pages_router
from .posts import router as posts_router
from .profiles import router as profiles_router
from .realtime import router as realtime_router

__all__ = [
    "auth_router",
    "comments_router",
    "messages_router",
    "notifications_router",
    "pages_router",
    "posts_router",
    "profiles_router",
    "realtime_router",
]
