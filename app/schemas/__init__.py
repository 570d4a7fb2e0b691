from app.schemas.badge import Badge, BadgeDefinition
from app.schemas.listing import Listing, ListingCreate, ListingFilters, ListingVisibilityUpdate
from app.schemas.message import Conversation, Message, MessageCreate
from app.schemas.roommate import (
    CompatibilityDetails,
    Roommate,
    RoommateDetails,
    RoommateFilters,
    RoommateResponse,
    RoommateUpdate,
)
from app.schemas.user import User, UserBadge, UserCreate, UserProfileUpdate, UserResponse

__all__ = [
    "Badge",
    "BadgeDefinition",
    "CompatibilityDetails",
    "Conversation",
    "Listing",
    "ListingCreate",
    "ListingFilters",
    "ListingVisibilityUpdate",
    "Message",
    "MessageCreate",
    "Roommate",
    "RoommateDetails",
    "RoommateFilters",
    "RoommateResponse",
    "RoommateUpdate",
    "User",
    "UserBadge",
    "UserCreate",
    "UserProfileUpdate",
    "UserResponse",
]
