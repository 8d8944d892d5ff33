"""Convenience exports for schema layer."""
from .auth import AuthResponse, LoginRequest, RegisterRequest
from .comments import CommentCreate, CommentListResponse, CommentResponse
from .local import AnonymousProfile, EditIntent, LocalPostRef, StorageInfo, UserPreferences
from .messages import (
    ConversationListResponse,
    ConversationSummary,
    ConversationThreadResponse,
    InterestResponse,
    MessageResponse,
    MessageSendRequest,
)
from .notifications import (
    NotificationListResponse,
    NotificationMarkReadRequest,
    NotificationResponse,
    NotificationSummaryResponse,
)
from .posts import (
    FeedQuery,
    HomeResponse,
    ImageOrderRequest,
    ImageSetResponse,
    ListingDraft,
    ListingSubmitResponse,
    ListingUpdate,
    OwnerSummary,
    PostDetailResponse,
    PostFeedResponse,
    PostImageResponse,
    PostResponse,
    ShareLinks,
    UploadFailureResponse,
)
from .profiles import (
    AnonymousProfileResponse,
    AnonymousProfileUpdate,
    ProfileResponse,
    PublicProfile,
    ProfileUpdateRequest,
    PublicProfileResponse,
    ViewerProfileResponse,
)

__all__ = [
    "AuthResponse",
    "LoginRequest",
    "RegisterRequest",
    "CommentCreate",
    "CommentListResponse",
    "CommentResponse",
    "AnonymousProfile",
    "EditIntent",
    "LocalPostRef",
    "StorageInfo",
    "UserPreferences",
    "ConversationListResponse",
    "ConversationSummary",
    "ConversationThreadResponse",
    "InterestResponse",
    "MessageResponse",
    "MessageSendRequest",
    "NotificationListResponse",
    "NotificationMarkReadRequest",
    "NotificationResponse",
    "NotificationSummaryResponse",
    "FeedQuery",
    "HomeResponse",
    "ImageOrderRequest",
    "ImageSetResponse",
    "ListingDraft",
    "ListingSubmitResponse",
    "ListingUpdate",
    "OwnerSummary",
    "PostDetailResponse",
    "PostFeedResponse",
    "PostImageResponse",
    "PostResponse",
    "ShareLinks",
    "UploadFailureResponse",
    "AnonymousProfileResponse",
    "AnonymousProfileUpdate",
    "ProfileResponse",
    "PublicProfile",
    "ProfileUpdateRequest",
    "PublicProfileResponse",
    "ViewerProfileResponse",
]
