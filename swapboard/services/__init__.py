"""Service layer exports."""
from .auth_service import (
    authenticate_user,
    create_access_token,
    decode_access_token,
    hash_password,
    login_user,
    register_user,
    verify_password,
)
from .comment_service import CommentThread, add_comment, comment_view, list_comments
from .composer import (
    ListingSubmission,
    build_post_row,
    restore_draft,
    save_draft,
    submit_listing,
    validate_listing,
)
from .conversation_service import (
    InterestResult,
    MessageThread,
    express_interest,
    list_conversations,
    mark_conversation_read,
    message_view,
    open_conversation,
    send_message,
    summarize,
)
from .feed_service import LiveFeed, fetch_feed, filter_posts, home_summary, sort_posts
from .identity import AnonymousIdentityResolver, generate_anonymous_id, member_display_name
from .image_service import ImageSet, ImageUpload, UploadFailure, upload_images
from .notification_service import (
    NotificationFeed,
    NotificationType,
    add_notification,
    count_unread_notifications,
    list_notifications,
    mark_all_read,
    mark_read,
)
from .post_service import (
    add_listing_images,
    begin_edit,
    delete_listing,
    get_post_detail,
    list_my_posts,
    load_for_edit,
    owner_view,
    remove_listing_image,
    reorder_listing_images,
    update_listing,
)
from .profile_service import (
    anonymous_profile_view,
    get_profile,
    get_public_profile,
    rename_anonymous_profile,
    update_profile,
)

__all__ = [
    "authenticate_user",
    "create_access_token",
    "decode_access_token",
    "hash_password",
    "login_user",
    "register_user",
    "verify_password",
    "CommentThread",
    "add_comment",
    "list_comments",
    "comment_view",
    "ListingSubmission",
    "build_post_row",
    "restore_draft",
    "save_draft",
    "submit_listing",
    "validate_listing",
    "InterestResult",
    "MessageThread",
    "express_interest",
    "list_conversations",
    "mark_conversation_read",
    "message_view",
    "open_conversation",
    "send_message",
    "summarize",
    "LiveFeed",
    "fetch_feed",
    "filter_posts",
    "home_summary",
    "sort_posts",
    "AnonymousIdentityResolver",
    "generate_anonymous_id",
    "member_display_name",
    "ImageSet",
    "ImageUpload",
    "UploadFailure",
    "upload_images",
    "NotificationFeed",
    "NotificationType",
    "add_notification",
    "count_unread_notifications",
    "list_notifications",
    "mark_all_read",
    "mark_read",
    "add_listing_images",
    "begin_edit",
    "delete_listing",
    "get_post_detail",
    "list_my_posts",
    "load_for_edit",
    "owner_view",
    "remove_listing_image",
    "reorder_listing_images",
    "update_listing",
    "anonymous_profile_view",
    "get_profile",
    "get_public_profile",
    "rename_anonymous_profile",
    "update_profile",
]
