"""SQLAlchemy models exposed for metadata creation and imports."""
from .chat import Chat, ChatMessage
from .comment import Comment
from .listing import EditRequest, Listing, ListingReport, Review
from .snapshot import Snapshot
from .user import SocialConnection, SocialProfile, User

__all__ = [
    "User",
    "SocialConnection",
    "SocialProfile",
    "Listing",
    "ListingReport",
    "EditRequest",
    "Review",
    "Comment",
    "Chat",
    "ChatMessage",
    "Snapshot",
]
