"""
Nestmate — Storage contract

``Storage`` is the single interface that route handlers and services talk
to.  ``MemoryStorage`` and ``SqlStorage`` implement it and must be
indistinguishable to callers.

Conventions shared by every implementation:

* Reads report absence with ``None`` (single entity) or ``[]`` (collections).
* Mutations that need an existing target raise ``NotFoundError``.
* Returned objects are detached pydantic copies; mutating them never changes
  stored state.
"""

from __future__ import annotations

import abc
from typing import Optional

from app.config import get_settings
from app.schemas.badge import Badge, BadgeDefinition
from app.schemas.listing import Listing, ListingCreate, ListingFilters
from app.schemas.message import Conversation, Message
from app.schemas.roommate import Roommate, RoommateFilters, RoommateUpdate
from app.schemas.user import User, UserBadge, UserProfileUpdate
from app.services.compatibility_service import CompatibilityService
from app.utils.security import verify_password


def pair_key(user_a: int, user_b: int) -> tuple[int, int]:
    """Order-independent key for a conversation between two users."""
    return (user_a, user_b) if user_a <= user_b else (user_b, user_a)


class Storage(abc.ABC):
    """Abstract storage contract (all operations are coroutines)."""

    backend_name: str = "abstract"

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Prepare the backend; raise ``DependencyUnavailableError`` if it
        cannot be used."""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass

    # ── Users ─────────────────────────────────────────────────────────────

    @abc.abstractmethod
    async def get_user(self, user_id: int) -> Optional[User]: ...

    @abc.abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abc.abstractmethod
    async def create_user(self, username: str, raw_password: str) -> User:
        """Hash the credential and store a blank profile.

        Raises ``DuplicateHandleError`` when ``username`` is taken.
        """

    @abc.abstractmethod
    async def update_user_profile(
        self, user_id: int, profile: UserProfileUpdate
    ) -> User:
        """Merge the fields explicitly set on ``profile``.

        Completion and badges are left alone; see ``ProfileService``.
        """

    @abc.abstractmethod
    async def set_user_verified(self, user_id: int, verified: bool) -> User: ...

    @abc.abstractmethod
    async def set_profile_completion(self, user_id: int, completion: int) -> User: ...

    async def verify_credentials(
        self, username: str, raw_password: str
    ) -> Optional[User]:
        user = await self.get_user_by_username(username)
        if user is None or not verify_password(user.password, raw_password):
            return None
        return user

    # ── Badges ────────────────────────────────────────────────────────────

    @abc.abstractmethod
    async def ensure_badge(self, definition: BadgeDefinition) -> Badge:
        """Return the catalog badge named ``definition.name``, creating it
        on first use."""

    @abc.abstractmethod
    async def award_badge(self, user_id: int, badge_id: int) -> Optional[UserBadge]:
        """Snapshot the badge onto the user unless already held.

        Returns the new snapshot, or ``None`` when the user already had it.
        """

    @abc.abstractmethod
    async def get_user_badges(self, user_id: int) -> list[UserBadge]: ...

    # ── Roommates ─────────────────────────────────────────────────────────

    @abc.abstractmethod
    async def upsert_roommate(self, user_id: int, details: RoommateUpdate) -> Roommate: ...

    @abc.abstractmethod
    async def list_roommates(
        self, filters: Optional[RoommateFilters] = None
    ) -> list[Roommate]: ...

    async def top_matches(self, user_id: int) -> list[Roommate]:
        """Best-scoring roommates for ``user_id``, never including the user."""
        user = await self.get_user(user_id)
        if user is None:
            return []
        candidates = await self.list_roommates()
        return CompatibilityService().rank(
            user, candidates, limit=get_settings().TOP_MATCHES_LIMIT
        )

    # ── Listings ──────────────────────────────────────────────────────────

    @abc.abstractmethod
    async def list_listings(
        self,
        filters: Optional[ListingFilters] = None,
        viewer_id: Optional[int] = None,
    ) -> list[Listing]: ...

    @abc.abstractmethod
    async def get_listing(
        self, listing_id: int, viewer_id: Optional[int] = None
    ) -> Optional[Listing]:
        """``None`` for missing listings and for private ones the viewer
        does not own."""

    @abc.abstractmethod
    async def featured_listings(self) -> list[Listing]: ...

    @abc.abstractmethod
    async def list_user_listings(self, owner_id: int) -> list[Listing]: ...

    @abc.abstractmethod
    async def create_listing(self, owner_id: int, fields: ListingCreate) -> Listing: ...

    @abc.abstractmethod
    async def set_listing_visibility(
        self, listing_id: int, owner_id: int, is_public: bool
    ) -> Listing: ...

    @abc.abstractmethod
    async def set_listing_featured(self, listing_id: int, is_featured: bool) -> Listing: ...

    # ── Messages ──────────────────────────────────────────────────────────

    @abc.abstractmethod
    async def messages_between(self, user_id: int, other_id: int) -> list[Message]:
        """Thread between two users, oldest first.

        Side effect: every message ``other_id`` sent to ``user_id`` is marked
        read, and the returned messages already reflect that.
        """

    @abc.abstractmethod
    async def conversations_for(self, user_id: int) -> list[Conversation]: ...

    @abc.abstractmethod
    async def create_message(
        self, sender_id: int, receiver_id: int, content: str
    ) -> Message:
        """Append to the log, then refresh the pair's conversation pointer.

        A pointer failure is logged and swallowed; the message stands.
        """

    @abc.abstractmethod
    async def get_conversation_pointer(
        self, user_a: int, user_b: int
    ) -> Optional[int]:
        """Cached latest message id for the pair, if any."""
