"""
Nestmate — Volatile in-process storage backend.

Keyed dicts plus one auto-incrementing counter per entity type.  Every
mutation runs under a single ``asyncio.Lock`` so id assignment and map
updates are atomic; reads work on a snapshot and take no lock.

Selected automatically when no ``DATABASE_URL`` is configured, which makes it
the backend for tests and demos.
"""

from __future__ import annotations

import asyncio
import itertools
from datetime import datetime, timezone
from typing import Optional

import structlog

from app.config import get_settings
from app.exceptions import DuplicateHandleError, NotFoundError
from app.schemas.badge import Badge, BadgeDefinition
from app.schemas.listing import Listing, ListingCreate, ListingFilters
from app.schemas.message import Conversation, Message
from app.schemas.roommate import (
    Roommate,
    RoommateDetails,
    RoommateFilters,
    RoommateUpdate,
)
from app.schemas.user import User, UserBadge, UserProfileUpdate
from app.services.conversation_service import build_conversations
from app.services.search_filters import listing_matches, roommate_matches
from app.services.visibility import filter_visible, is_featured_visible, is_visible
from app.storage.base import Storage, pair_key
from app.utils.security import hash_password

logger = structlog.get_logger("nestmate.storage.memory")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemoryStorage(Storage):
    backend_name = "memory"

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

        self._users: dict[int, User] = {}
        self._roommates: dict[int, RoommateDetails] = {}
        self._listings: dict[int, Listing] = {}
        self._messages: dict[int, Message] = {}
        self._badges: dict[str, Badge] = {}
        # pair_key -> (last_message_id, updated_at)
        self._conversations: dict[tuple[int, int], tuple[int, datetime]] = {}

        self._user_ids = itertools.count(1)
        self._listing_ids = itertools.count(1)
        self._message_ids = itertools.count(1)
        self._badge_ids = itertools.count(1)

    # ── Internal helpers ──────────────────────────────────────────────────

    def _require_user(self, user_id: int) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def _replace_user(self, user_id: int, **changes) -> User:
        user = self._require_user(user_id).model_copy(update=changes)
        self._users[user_id] = user
        return user.model_copy(deep=True)

    def _require_listing(self, listing_id: int) -> Listing:
        listing = self._listings.get(listing_id)
        if listing is None:
            raise NotFoundError("Listing", listing_id)
        return listing

    # ── Users ─────────────────────────────────────────────────────────────

    async def get_user(self, user_id: int) -> Optional[User]:
        user = self._users.get(user_id)
        return user.model_copy(deep=True) if user is not None else None

    async def get_user_by_username(self, username: str) -> Optional[User]:
        for user in list(self._users.values()):
            if user.username == username:
                return user.model_copy(deep=True)
        return None

    async def create_user(self, username: str, raw_password: str) -> User:
        async with self._lock:
            if any(u.username == username for u in self._users.values()):
                raise DuplicateHandleError(username)

            user = User(
                id=next(self._user_ids),
                username=username,
                password=hash_password(raw_password),
                preferences=[],
                user_badges=[],
                is_verified=False,
                profile_completion=0,
                created_at=_utcnow(),
            )
            self._users[user.id] = user

        logger.info("user_created", user_id=user.id, username=username)
        return user.model_copy(deep=True)

    async def update_user_profile(
        self, user_id: int, profile: UserProfileUpdate
    ) -> User:
        changes = profile.changes()
        async with self._lock:
            return self._replace_user(user_id, **changes)

    async def set_user_verified(self, user_id: int, verified: bool) -> User:
        async with self._lock:
            return self._replace_user(user_id, is_verified=verified)

    async def set_profile_completion(self, user_id: int, completion: int) -> User:
        async with self._lock:
            return self._replace_user(user_id, profile_completion=completion)

    # ── Badges ────────────────────────────────────────────────────────────

    async def ensure_badge(self, definition: BadgeDefinition) -> Badge:
        async with self._lock:
            badge = self._badges.get(definition.name)
            if badge is None:
                badge = Badge(id=next(self._badge_ids), **definition.model_dump())
                self._badges[badge.name] = badge
                logger.info("badge_created", badge_id=badge.id, name=badge.name)
            return badge.model_copy()

    async def award_badge(self, user_id: int, badge_id: int) -> Optional[UserBadge]:
        async with self._lock:
            user = self._require_user(user_id)
            badge = next(
                (b for b in self._badges.values() if b.id == badge_id), None
            )
            if badge is None:
                raise NotFoundError("Badge", badge_id)
            if user.has_badge(badge_id):
                return None

            snapshot = UserBadge(
                id=badge.id,
                name=badge.name,
                description=badge.description,
                icon=badge.icon,
                category=badge.category,
                awarded_at=_utcnow(),
            )
            self._replace_user(user_id, user_badges=[*user.user_badges, snapshot])
            return snapshot

    async def get_user_badges(self, user_id: int) -> list[UserBadge]:
        user = self._users.get(user_id)
        return list(user.user_badges) if user is not None else []

    # ── Roommates ─────────────────────────────────────────────────────────

    async def upsert_roommate(self, user_id: int, details: RoommateUpdate) -> Roommate:
        async with self._lock:
            user = self._require_user(user_id)
            current = self._roommates.get(user_id) or RoommateDetails(user_id=user_id)
            merged = current.model_copy(
                update=details.model_dump(exclude_unset=True, exclude_none=True)
            )
            self._roommates[user_id] = merged
            return Roommate.join(user, merged)

    async def list_roommates(
        self, filters: Optional[RoommateFilters] = None
    ) -> list[Roommate]:
        roommates = [
            Roommate.join(user, self._roommates[user_id])
            for user_id, user in list(self._users.items())
            if user_id in self._roommates
        ]
        return [r for r in roommates if roommate_matches(r, filters)]

    # ── Listings ──────────────────────────────────────────────────────────

    async def list_listings(
        self,
        filters: Optional[ListingFilters] = None,
        viewer_id: Optional[int] = None,
    ) -> list[Listing]:
        visible = filter_visible(list(self._listings.values()), viewer_id)
        return [
            listing.model_copy(deep=True)
            for listing in visible
            if listing_matches(listing, filters)
        ]

    async def get_listing(
        self, listing_id: int, viewer_id: Optional[int] = None
    ) -> Optional[Listing]:
        listing = self._listings.get(listing_id)
        if listing is None or not is_visible(listing, viewer_id):
            return None
        return listing.model_copy(deep=True)

    async def featured_listings(self) -> list[Listing]:
        featured = [
            listing.model_copy(deep=True)
            for listing in list(self._listings.values())
            if is_featured_visible(listing)
        ]
        return featured[: get_settings().FEATURED_LISTINGS_LIMIT]

    async def list_user_listings(self, owner_id: int) -> list[Listing]:
        return [
            listing.model_copy(deep=True)
            for listing in list(self._listings.values())
            if listing.user_id == owner_id
        ]

    async def create_listing(self, owner_id: int, fields: ListingCreate) -> Listing:
        async with self._lock:
            self._require_user(owner_id)
            data = fields.model_dump()
            data["amenities"] = data.get("amenities") or []
            data["images"] = data.get("images") or []
            listing = Listing(
                id=next(self._listing_ids),
                user_id=owner_id,
                is_public=True,
                is_featured=False,
                rating=0,
                created_at=_utcnow(),
                **data,
            )
            self._listings[listing.id] = listing

        logger.info("listing_created", listing_id=listing.id, owner_id=owner_id)
        return listing.model_copy(deep=True)

    async def set_listing_visibility(
        self, listing_id: int, owner_id: int, is_public: bool
    ) -> Listing:
        async with self._lock:
            listing = self._listings.get(listing_id)
            if listing is None or listing.user_id != owner_id:
                raise NotFoundError("Listing", listing_id)
            listing = listing.model_copy(update={"is_public": is_public})
            self._listings[listing_id] = listing
            return listing.model_copy(deep=True)

    async def set_listing_featured(self, listing_id: int, is_featured: bool) -> Listing:
        async with self._lock:
            listing = self._require_listing(listing_id).model_copy(
                update={"is_featured": is_featured}
            )
            self._listings[listing_id] = listing
            return listing.model_copy(deep=True)

    # ── Messages ──────────────────────────────────────────────────────────

    async def messages_between(self, user_id: int, other_id: int) -> list[Message]:
        async with self._lock:
            thread: list[Message] = []
            for message_id, message in self._messages.items():
                if {message.sender_id, message.receiver_id} != {user_id, other_id}:
                    continue
                if (
                    message.sender_id == other_id
                    and message.receiver_id == user_id
                    and not message.read
                ):
                    message = message.model_copy(update={"read": True})
                    self._messages[message_id] = message
                thread.append(message.model_copy())

        thread.sort(key=lambda m: (m.timestamp, m.id))
        return thread

    async def conversations_for(self, user_id: int) -> list[Conversation]:
        messages = list(self._messages.values())
        users = dict(self._users)
        return build_conversations(user_id, messages, users)

    async def create_message(
        self, sender_id: int, receiver_id: int, content: str
    ) -> Message:
        async with self._lock:
            self._require_user(sender_id)
            self._require_user(receiver_id)
            message = Message(
                id=next(self._message_ids),
                sender_id=sender_id,
                receiver_id=receiver_id,
                content=content,
                read=False,
                timestamp=_utcnow(),
            )
            self._messages[message.id] = message

            try:
                await self._update_conversation_pointer(message)
            except Exception:
                logger.exception(
                    "conversation_pointer_update_failed",
                    message_id=message.id,
                    sender_id=sender_id,
                    receiver_id=receiver_id,
                )

        return message.model_copy()

    async def _update_conversation_pointer(self, message: Message) -> None:
        key = pair_key(message.sender_id, message.receiver_id)
        current = self._conversations.get(key)
        if current is None or current[0] < message.id:
            self._conversations[key] = (message.id, message.timestamp)

    async def get_conversation_pointer(
        self, user_a: int, user_b: int
    ) -> Optional[int]:
        entry = self._conversations.get(pair_key(user_a, user_b))
        return entry[0] if entry is not None else None
