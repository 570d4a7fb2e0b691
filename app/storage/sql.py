"""
Nestmate — Durable relational storage backend (SQLAlchemy 2.0 async).

Each operation opens its own ``AsyncSession`` and runs inside one
transaction.  Scalar search predicates are pushed into SQL; tag-list
predicates (stored as JSON arrays) are evaluated in Python with the same
helpers the in-memory backend uses.

Find-or-create paths use dialect upserts so concurrent first awards or
first messages cannot create duplicate rows:

* badge catalog   — ``INSERT .. ON CONFLICT (name) DO NOTHING``
* conversation    — ``INSERT .. ON CONFLICT (user1_id, user2_id) DO UPDATE``

PostgreSQL (asyncpg) and SQLite (aiosqlite) are supported.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import AsyncIterator, Optional

import structlog
from sqlalchemy import and_, func, or_, select, text, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from app import models
from app.config import get_settings
from app.database import build_session_factory, init_schema
from app.exceptions import (
    DependencyUnavailableError,
    DuplicateHandleError,
    NotFoundError,
)
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
from app.services.conversation_service import build_conversations, correspondents_of
from app.services.search_filters import matches_any
from app.services.visibility import is_visible
from app.storage.base import Storage, pair_key
from app.utils.security import hash_password

logger = structlog.get_logger("nestmate.storage.sql")

# Dialects with an ``INSERT .. ON CONFLICT`` construct.
SUPPORTED_DIALECTS = frozenset({"postgresql", "sqlite"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SqlStorage(Storage):
    backend_name = "sql"

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self._session_factory = build_session_factory(engine)
        self._dialect = engine.dialect.name

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Create missing tables and verify connectivity."""
        if self._dialect not in SUPPORTED_DIALECTS:
            logger.error("sql_storage_unsupported_dialect", dialect=self._dialect)
            raise DependencyUnavailableError(
                f"Unsupported database dialect: {self._dialect!r}"
            )
        try:
            await init_schema(self.engine)
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (OSError, SQLAlchemyError) as exc:
            logger.error("sql_storage_unavailable", error=str(exc))
            raise DependencyUnavailableError(
                f"Durable storage is unreachable: {exc}"
            ) from exc
        logger.info("sql_storage_ready", dialect=self._dialect)

    async def ping(self) -> bool:
        try:
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))
        except (OSError, SQLAlchemyError) as exc:
            logger.error("sql_storage_ping_failed", error=str(exc))
            return False
        return True

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("sql_storage_closed")

    # ── Internal helpers ──────────────────────────────────────────────────

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            async with session.begin():
                yield session

    def _insert(self, table):
        if self._dialect == "postgresql":
            return pg_insert(table)
        if self._dialect == "sqlite":
            return sqlite_insert(table)
        raise NotImplementedError(f"Upserts are not supported on {self._dialect!r}")

    @staticmethod
    async def _require_user(session: AsyncSession, user_id: int) -> models.User:
        row = await session.get(models.User, user_id)
        if row is None:
            raise NotFoundError("User", user_id)
        return row

    @staticmethod
    def _to_roommate(
        user_row: models.User, roommate_row: models.RoommateProfile
    ) -> Roommate:
        return Roommate.join(
            User.model_validate(user_row),
            RoommateDetails.model_validate(roommate_row),
        )

    # ── Users ─────────────────────────────────────────────────────────────

    async def get_user(self, user_id: int) -> Optional[User]:
        async with self._session_factory() as session:
            row = await session.get(models.User, user_id)
            return User.model_validate(row) if row is not None else None

    async def get_user_by_username(self, username: str) -> Optional[User]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(models.User).where(models.User.username == username)
            )
            row = result.scalar_one_or_none()
            return User.model_validate(row) if row is not None else None

    async def create_user(self, username: str, raw_password: str) -> User:
        log = logger.bind(username=username)
        try:
            async with self._transaction() as session:
                existing = await session.execute(
                    select(models.User.id).where(models.User.username == username)
                )
                if existing.scalar_one_or_none() is not None:
                    raise DuplicateHandleError(username)

                row = models.User(
                    username=username,
                    password=hash_password(raw_password),
                    preferences=[],
                    user_badges=[],
                    is_verified=False,
                    profile_completion=0,
                    created_at=_utcnow(),
                )
                session.add(row)
                await session.flush()
                user = User.model_validate(row)
        except IntegrityError as exc:
            # Lost a race with a concurrent registration of the same handle.
            log.warning("create_user_integrity_conflict")
            raise DuplicateHandleError(username) from exc

        log.info("user_created", user_id=user.id)
        return user

    async def update_user_profile(
        self, user_id: int, profile: UserProfileUpdate
    ) -> User:
        changes = profile.changes()
        async with self._transaction() as session:
            row = await self._require_user(session, user_id)
            for name, value in changes.items():
                setattr(row, name, value)
            await session.flush()
            return User.model_validate(row)

    async def set_user_verified(self, user_id: int, verified: bool) -> User:
        async with self._transaction() as session:
            row = await self._require_user(session, user_id)
            row.is_verified = verified
            await session.flush()
            return User.model_validate(row)

    async def set_profile_completion(self, user_id: int, completion: int) -> User:
        async with self._transaction() as session:
            row = await self._require_user(session, user_id)
            row.profile_completion = completion
            await session.flush()
            return User.model_validate(row)

    # ── Badges ────────────────────────────────────────────────────────────

    async def ensure_badge(self, definition: BadgeDefinition) -> Badge:
        async with self._transaction() as session:
            stmt = (
                self._insert(models.Badge)
                .values(**definition.model_dump())
                .on_conflict_do_nothing(index_elements=["name"])
            )
            await session.execute(stmt)
            result = await session.execute(
                select(models.Badge).where(models.Badge.name == definition.name)
            )
            return Badge.model_validate(result.scalar_one())

    async def award_badge(self, user_id: int, badge_id: int) -> Optional[UserBadge]:
        async with self._transaction() as session:
            result = await session.execute(
                select(models.User)
                .where(models.User.id == user_id)
                .with_for_update()
            )
            row = result.scalar_one_or_none()
            if row is None:
                raise NotFoundError("User", user_id)

            badge = await session.get(models.Badge, badge_id)
            if badge is None:
                raise NotFoundError("Badge", badge_id)

            held = row.user_badges or []
            if any(entry.get("id") == badge_id for entry in held):
                return None

            snapshot = UserBadge(
                id=badge.id,
                name=badge.name,
                description=badge.description,
                icon=badge.icon,
                category=badge.category,
                awarded_at=_utcnow(),
            )
            # Reassign so the JSON column is flagged dirty.
            row.user_badges = [*held, snapshot.model_dump(mode="json")]
            await session.flush()
            return snapshot

    async def get_user_badges(self, user_id: int) -> list[UserBadge]:
        user = await self.get_user(user_id)
        return list(user.user_badges) if user is not None else []

    # ── Roommates ─────────────────────────────────────────────────────────

    async def upsert_roommate(self, user_id: int, details: RoommateUpdate) -> Roommate:
        changes = details.model_dump(exclude_unset=True, exclude_none=True)
        async with self._transaction() as session:
            user_row = await self._require_user(session, user_id)
            result = await session.execute(
                select(models.RoommateProfile).where(
                    models.RoommateProfile.user_id == user_id
                )
            )
            roommate_row = result.scalar_one_or_none()
            if roommate_row is None:
                roommate_row = models.RoommateProfile(
                    user_id=user_id, is_looking_for_room=True
                )
                session.add(roommate_row)
            for name, value in changes.items():
                setattr(roommate_row, name, value)
            await session.flush()
            return self._to_roommate(user_row, roommate_row)

    async def list_roommates(
        self, filters: Optional[RoommateFilters] = None
    ) -> list[Roommate]:
        stmt = (
            select(models.User, models.RoommateProfile)
            .join(
                models.RoommateProfile,
                models.RoommateProfile.user_id == models.User.id,
            )
            .order_by(models.User.id)
        )

        if filters is not None:
            if filters.location:
                stmt = stmt.where(
                    func.lower(models.User.location).contains(
                        filters.location.lower(), autoescape=True
                    )
                )
            if filters.min_age is not None:
                stmt = stmt.where(models.User.age >= filters.min_age)
            if filters.max_age is not None:
                stmt = stmt.where(models.User.age <= filters.max_age)
            if filters.gender:
                stmt = stmt.where(models.User.gender == filters.gender)
            if filters.is_verified:
                stmt = stmt.where(models.User.is_verified.is_(True))

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            roommates = [self._to_roommate(u, r) for u, r in result.all()]

        if filters is not None and filters.lifestyle:
            roommates = [
                r for r in roommates if matches_any(r.preferences, filters.lifestyle)
            ]
        return roommates

    # ── Listings ──────────────────────────────────────────────────────────

    async def list_listings(
        self,
        filters: Optional[ListingFilters] = None,
        viewer_id: Optional[int] = None,
    ) -> list[Listing]:
        if viewer_id is None:
            visible = models.Listing.is_public.is_(True)
        else:
            visible = or_(
                models.Listing.is_public.is_(True),
                models.Listing.user_id == viewer_id,
            )
        stmt = select(models.Listing).where(visible).order_by(models.Listing.id)

        if filters is not None:
            if filters.location:
                stmt = stmt.where(
                    func.lower(models.Listing.location).contains(
                        filters.location.lower(), autoescape=True
                    )
                )
            if filters.min_price is not None:
                stmt = stmt.where(models.Listing.price >= filters.min_price)
            if filters.max_price is not None:
                stmt = stmt.where(models.Listing.price <= filters.max_price)
            if filters.room_type:
                stmt = stmt.where(models.Listing.room_type == filters.room_type)
            if filters.available_now:
                stmt = stmt.where(models.Listing.available_from <= date.today())

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            listings = [Listing.model_validate(row) for row in result.scalars()]

        if filters is not None and filters.amenities:
            listings = [
                listing
                for listing in listings
                if matches_any(listing.amenities, filters.amenities)
            ]
        return listings

    async def get_listing(
        self, listing_id: int, viewer_id: Optional[int] = None
    ) -> Optional[Listing]:
        async with self._session_factory() as session:
            row = await session.get(models.Listing, listing_id)
            if row is None:
                return None
            listing = Listing.model_validate(row)
        return listing if is_visible(listing, viewer_id) else None

    async def featured_listings(self) -> list[Listing]:
        stmt = (
            select(models.Listing)
            .where(
                and_(
                    models.Listing.is_public.is_(True),
                    models.Listing.is_featured.is_(True),
                )
            )
            .order_by(models.Listing.id)
            .limit(get_settings().FEATURED_LISTINGS_LIMIT)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [Listing.model_validate(row) for row in result.scalars()]

    async def list_user_listings(self, owner_id: int) -> list[Listing]:
        stmt = (
            select(models.Listing)
            .where(models.Listing.user_id == owner_id)
            .order_by(models.Listing.id)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [Listing.model_validate(row) for row in result.scalars()]

    async def create_listing(self, owner_id: int, fields: ListingCreate) -> Listing:
        data = fields.model_dump()
        data["amenities"] = data.get("amenities") or []
        data["images"] = data.get("images") or []

        async with self._transaction() as session:
            await self._require_user(session, owner_id)
            row = models.Listing(
                user_id=owner_id,
                is_public=True,
                is_featured=False,
                rating=0,
                created_at=_utcnow(),
                **data,
            )
            session.add(row)
            await session.flush()
            listing = Listing.model_validate(row)

        logger.info("listing_created", listing_id=listing.id, owner_id=owner_id)
        return listing

    async def set_listing_visibility(
        self, listing_id: int, owner_id: int, is_public: bool
    ) -> Listing:
        async with self._transaction() as session:
            row = await session.get(models.Listing, listing_id)
            if row is None or row.user_id != owner_id:
                raise NotFoundError("Listing", listing_id)
            row.is_public = is_public
            await session.flush()
            return Listing.model_validate(row)

    async def set_listing_featured(self, listing_id: int, is_featured: bool) -> Listing:
        async with self._transaction() as session:
            row = await session.get(models.Listing, listing_id)
            if row is None:
                raise NotFoundError("Listing", listing_id)
            row.is_featured = is_featured
            await session.flush()
            return Listing.model_validate(row)

    # ── Messages ──────────────────────────────────────────────────────────

    async def messages_between(self, user_id: int, other_id: int) -> list[Message]:
        async with self._transaction() as session:
            await session.execute(
                update(models.Message)
                .where(
                    models.Message.sender_id == other_id,
                    models.Message.receiver_id == user_id,
                    models.Message.read.is_(False),
                )
                .values(read=True)
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(
                select(models.Message)
                .where(
                    or_(
                        and_(
                            models.Message.sender_id == user_id,
                            models.Message.receiver_id == other_id,
                        ),
                        and_(
                            models.Message.sender_id == other_id,
                            models.Message.receiver_id == user_id,
                        ),
                    )
                )
                .order_by(models.Message.timestamp, models.Message.id)
            )
            return [Message.model_validate(row) for row in result.scalars()]

    async def conversations_for(self, user_id: int) -> list[Conversation]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(models.Message).where(
                    or_(
                        models.Message.sender_id == user_id,
                        models.Message.receiver_id == user_id,
                    )
                )
            )
            messages = [Message.model_validate(row) for row in result.scalars()]

            partner_ids = correspondents_of(user_id, messages)
            users: dict[int, User] = {}
            if partner_ids:
                result = await session.execute(
                    select(models.User).where(models.User.id.in_(partner_ids))
                )
                users = {row.id: User.model_validate(row) for row in result.scalars()}

        return build_conversations(user_id, messages, users)

    async def create_message(
        self, sender_id: int, receiver_id: int, content: str
    ) -> Message:
        async with self._transaction() as session:
            await self._require_user(session, sender_id)
            await self._require_user(session, receiver_id)
            row = models.Message(
                sender_id=sender_id,
                receiver_id=receiver_id,
                content=content,
                read=False,
                timestamp=_utcnow(),
            )
            session.add(row)
            await session.flush()
            message = Message.model_validate(row)

        try:
            await self._update_conversation_pointer(message)
        except Exception:
            logger.exception(
                "conversation_pointer_update_failed",
                message_id=message.id,
                sender_id=sender_id,
                receiver_id=receiver_id,
            )

        return message

    async def _update_conversation_pointer(self, message: Message) -> None:
        user1_id, user2_id = pair_key(message.sender_id, message.receiver_id)
        stmt = self._insert(models.Conversation).values(
            user1_id=user1_id,
            user2_id=user2_id,
            last_message_id=message.id,
            updated_at=message.timestamp,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user1_id", "user2_id"],
            set_={
                "last_message_id": stmt.excluded.last_message_id,
                "updated_at": stmt.excluded.updated_at,
            },
            # Never move the pointer back to an older message.
            where=models.Conversation.last_message_id < stmt.excluded.last_message_id,
        )
        async with self._transaction() as session:
            await session.execute(stmt)

    async def get_conversation_pointer(
        self, user_a: int, user_b: int
    ) -> Optional[int]:
        user1_id, user2_id = pair_key(user_a, user_b)
        async with self._session_factory() as session:
            result = await session.execute(
                select(models.Conversation.last_message_id).where(
                    models.Conversation.user1_id == user1_id,
                    models.Conversation.user2_id == user2_id,
                )
            )
            return result.scalar_one_or_none()
