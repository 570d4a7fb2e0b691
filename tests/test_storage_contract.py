"""Contract tests run against every storage backend.

The ``storage`` fixture is parametrized over ``MemoryStorage`` and
``SqlStorage`` on in-memory SQLite; both must behave identically.
"""
from datetime import date

import pytest

from app.exceptions import DuplicateHandleError, NotFoundError
from app.schemas.badge import BadgeDefinition
from app.schemas.listing import ListingCreate, ListingFilters
from app.schemas.roommate import RoommateFilters, RoommateUpdate
from app.schemas.user import UserProfileUpdate

BADGE = BadgeDefinition(
    name="Early Adopter",
    description="Joined during the beta.",
    icon="🚀",
    category="community",
    criteria="Registered before launch",
)


def _listing(**fields) -> ListingCreate:
    defaults = {
        "title": "Modern Studio",
        "description": "Bright and quiet.",
        "location": "East Village, New York",
        "price": 1200,
        "room_type": "Private Room",
        "roommates": 1,
        "available_from": date(2024, 6, 1),
        "amenities": ["WiFi"],
    }
    defaults.update(fields)
    return ListingCreate(**defaults)


async def _seeker(storage, username, **profile):
    user = await storage.create_user(username, "pw")
    if profile:
        await storage.update_user_profile(user.id, UserProfileUpdate(**profile))
    await storage.upsert_roommate(user.id, RoommateUpdate(budget=1000))
    return user


class TestUsers:

    @pytest.mark.asyncio
    async def test_create_and_fetch(self, storage):
        user = await storage.create_user("sarah_j", "secret")

        assert user.id is not None
        assert user.password != "secret"
        assert user.preferences == []
        assert user.profile_completion == 0
        fetched = await storage.get_user(user.id)
        assert fetched.username == "sarah_j"
        assert (await storage.get_user_by_username("sarah_j")).id == user.id

    @pytest.mark.asyncio
    async def test_missing_user_reads_as_none(self, storage):
        assert await storage.get_user(999) is None
        assert await storage.get_user_by_username("nobody") is None

    @pytest.mark.asyncio
    async def test_duplicate_username(self, storage):
        await storage.create_user("sarah_j", "pw")
        with pytest.raises(DuplicateHandleError):
            await storage.create_user("sarah_j", "other")

    @pytest.mark.asyncio
    async def test_verify_credentials(self, storage):
        await storage.create_user("sarah_j", "secret")
        assert (await storage.verify_credentials("sarah_j", "secret")) is not None
        assert await storage.verify_credentials("sarah_j", "wrong") is None
        assert await storage.verify_credentials("nobody", "secret") is None

    @pytest.mark.asyncio
    async def test_update_merges_only_supplied_fields(self, storage):
        user = await storage.create_user("sarah_j", "pw")
        await storage.update_user_profile(
            user.id, UserProfileUpdate(first_name="Sarah", location="Chelsea")
        )
        updated = await storage.update_user_profile(
            user.id, UserProfileUpdate(location="Harlem")
        )
        assert updated.first_name == "Sarah"
        assert updated.location == "Harlem"

    @pytest.mark.asyncio
    async def test_update_missing_user(self, storage):
        with pytest.raises(NotFoundError):
            await storage.update_user_profile(999, UserProfileUpdate(first_name="X"))

    @pytest.mark.asyncio
    async def test_returned_objects_are_detached(self, storage):
        user = await storage.create_user("sarah_j", "pw")
        user.preferences.append("Clean")
        assert (await storage.get_user(user.id)).preferences == []


class TestBadges:

    @pytest.mark.asyncio
    async def test_ensure_badge_is_find_or_create(self, storage):
        first = await storage.ensure_badge(BADGE)
        second = await storage.ensure_badge(BADGE)
        assert first.id == second.id

    @pytest.mark.asyncio
    async def test_award_twice_keeps_one_entry(self, storage):
        user = await storage.create_user("sarah_j", "pw")
        badge = await storage.ensure_badge(BADGE)

        first = await storage.award_badge(user.id, badge.id)
        second = await storage.award_badge(user.id, badge.id)

        assert first.id == badge.id
        assert first.awarded_at.tzinfo is not None
        assert second is None

        badges = await storage.get_user_badges(user.id)
        assert [b.id for b in badges] == [badge.id]
        assert badges[0].name == "Early Adopter"
        assert badges[0].icon == "🚀"

    @pytest.mark.asyncio
    async def test_award_unknown_badge(self, storage):
        user = await storage.create_user("sarah_j", "pw")
        with pytest.raises(NotFoundError):
            await storage.award_badge(user.id, 999)

    @pytest.mark.asyncio
    async def test_badges_of_unknown_user(self, storage):
        assert await storage.get_user_badges(999) == []


class TestRoommates:

    @pytest.mark.asyncio
    async def test_upsert_merges(self, storage):
        user = await storage.create_user("alex_dev", "pw")
        await storage.upsert_roommate(user.id, RoommateUpdate(budget=1350, duration="1 year"))
        roommate = await storage.upsert_roommate(user.id, RoommateUpdate(duration="6 months"))

        assert roommate.id == user.id
        assert roommate.budget == 1350
        assert roommate.duration == "6 months"
        assert roommate.is_looking_for_room is True

    @pytest.mark.asyncio
    async def test_upsert_unknown_user(self, storage):
        with pytest.raises(NotFoundError):
            await storage.upsert_roommate(999, RoommateUpdate(budget=1))

    @pytest.mark.asyncio
    async def test_only_users_with_extension_are_listed(self, storage):
        await storage.create_user("no_extension", "pw")
        seeker = await _seeker(storage, "alex_dev")
        assert [r.id for r in await storage.list_roommates()] == [seeker.id]

    @pytest.mark.asyncio
    async def test_filters(self, storage):
        await _seeker(storage, "alex_dev", age=26, location="Williamsburg, Brooklyn",
                      preferences=["Night owl", "Quiet"])
        jamie = await _seeker(storage, "jamie_g", age=24, location="Chelsea, New York",
                              preferences=["Social"])
        await storage.set_user_verified(jamie.id, True)

        by_location = await storage.list_roommates(RoommateFilters(location="brooklyn"))
        by_tags = await storage.list_roommates(RoommateFilters(lifestyle=["Social", "Clean"]))
        by_age = await storage.list_roommates(RoommateFilters(min_age=25))
        verified = await storage.list_roommates(RoommateFilters(is_verified=True))

        assert [r.username for r in by_location] == ["alex_dev"]
        assert [r.username for r in by_tags] == ["jamie_g"]
        assert [r.username for r in by_age] == ["alex_dev"]
        assert [r.username for r in verified] == ["jamie_g"]

    @pytest.mark.asyncio
    async def test_top_matches(self, storage):
        me = await _seeker(storage, "me", preferences=["Clean", "Early bird"],
                           location="Chelsea")
        for i in range(8):
            await _seeker(storage, f"seeker{i}", preferences=["Clean"] if i % 2 else [],
                          location="Chelsea" if i < 4 else "Harlem")

        matches = await storage.top_matches(me.id)

        assert len(matches) == 6
        assert me.id not in {m.id for m in matches}
        scores = [m.compatibility.overall for m in matches]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_top_matches_unknown_user(self, storage):
        assert await storage.top_matches(999) == []


class TestListings:

    @pytest.mark.asyncio
    async def test_create_sets_server_defaults(self, storage):
        owner = await storage.create_user("sarah_j", "pw")
        listing = await storage.create_listing(owner.id, _listing(images=None))

        assert listing.user_id == owner.id
        assert listing.is_public is True
        assert listing.is_featured is False
        assert listing.images == []

    @pytest.mark.asyncio
    async def test_private_listing_visibility(self, storage):
        owner = await storage.create_user("sarah_j", "pw")
        other = await storage.create_user("alex_dev", "pw")
        listing = await storage.create_listing(owner.id, _listing())
        await storage.set_listing_visibility(listing.id, owner.id, False)

        assert (await storage.get_listing(listing.id, viewer_id=owner.id)) is not None
        assert await storage.get_listing(listing.id, viewer_id=other.id) is None
        assert await storage.get_listing(listing.id) is None
        assert await storage.list_listings(viewer_id=other.id) == []
        assert len(await storage.list_listings(viewer_id=owner.id)) == 1
        assert len(await storage.list_user_listings(owner.id)) == 1

    @pytest.mark.asyncio
    async def test_visibility_change_requires_owner(self, storage):
        owner = await storage.create_user("sarah_j", "pw")
        other = await storage.create_user("alex_dev", "pw")
        listing = await storage.create_listing(owner.id, _listing())

        with pytest.raises(NotFoundError):
            await storage.set_listing_visibility(listing.id, other.id, False)
        with pytest.raises(NotFoundError):
            await storage.set_listing_visibility(999, owner.id, False)

    @pytest.mark.asyncio
    async def test_featured_excludes_private_and_caps(self, storage):
        owner = await storage.create_user("sarah_j", "pw")
        ids = []
        for i in range(5):
            listing = await storage.create_listing(owner.id, _listing(title=f"Room {i}"))
            await storage.set_listing_featured(listing.id, True)
            ids.append(listing.id)
        await storage.set_listing_visibility(ids[0], owner.id, False)

        featured = await storage.featured_listings()

        assert [l.id for l in featured] == ids[1:4]

    @pytest.mark.asyncio
    async def test_search_filters(self, storage):
        owner = await storage.create_user("sarah_j", "pw")
        await storage.create_listing(owner.id, _listing(title="cheap", price=800,
                                                        amenities=["Laundry"]))
        await storage.create_listing(owner.id, _listing(title="pricey", price=2000,
                                                        location="Park Slope, Brooklyn"))
        await storage.create_listing(owner.id, _listing(title="later", price=900,
                                                        available_from=date(2999, 1, 1)))

        async def titles(**filters):
            return [l.title for l in await storage.list_listings(ListingFilters(**filters))]

        assert await titles(max_price=1000) == ["cheap", "later"]
        assert await titles(location="brooklyn") == ["pricey"]
        assert await titles(amenities=["Laundry", "Pool"]) == ["cheap"]
        assert await titles(available_now=True) == ["cheap", "pricey"]


class TestMessages:

    @pytest.mark.asyncio
    async def test_round_trip(self, storage):
        a = await storage.create_user("sarah_j", "pw")
        b = await storage.create_user("alex_dev", "pw")

        await storage.create_message(a.id, b.id, "hi")
        thread = await storage.messages_between(a.id, b.id)

        assert len(thread) == 1
        assert thread[0].content == "hi"
        assert (thread[0].sender_id, thread[0].receiver_id) == (a.id, b.id)

    @pytest.mark.asyncio
    async def test_fetching_thread_marks_incoming_read(self, storage):
        a = await storage.create_user("sarah_j", "pw")
        b = await storage.create_user("alex_dev", "pw")
        await storage.create_message(a.id, b.id, "hello")
        await storage.create_message(b.id, a.id, "hey")

        assert (await storage.conversations_for(a.id))[0].read is False

        thread = await storage.messages_between(a.id, b.id)
        by_content = {m.content: m for m in thread}
        assert by_content["hey"].read is True
        assert by_content["hello"].read is False
        assert (await storage.conversations_for(a.id))[0].read is True

    @pytest.mark.asyncio
    async def test_thread_ordered_oldest_first(self, storage):
        a = await storage.create_user("sarah_j", "pw")
        b = await storage.create_user("alex_dev", "pw")
        for text in ("one", "two", "three"):
            await storage.create_message(a.id, b.id, text)

        thread = await storage.messages_between(b.id, a.id)
        assert [m.content for m in thread] == ["one", "two", "three"]

    @pytest.mark.asyncio
    async def test_inbox_lists_each_partner_once(self, storage):
        a = await storage.create_user("sarah_j", "pw")
        b = await storage.create_user("alex_dev", "pw")
        c = await storage.create_user("jamie_g", "pw")
        await storage.update_user_profile(b.id, UserProfileUpdate(first_name="Alex", last_name="Chen"))
        await storage.create_message(a.id, b.id, "first")
        await storage.create_message(c.id, a.id, "from jamie")
        await storage.create_message(b.id, a.id, "latest")

        inbox = await storage.conversations_for(a.id)

        assert [conv.user_id for conv in inbox] == [b.id, c.id]
        assert inbox[0].name == "Alex Chen"
        assert inbox[0].last_message == "latest"
        assert inbox[0].read is False
        assert inbox[1].name == "jamie_g"

    @pytest.mark.asyncio
    async def test_conversation_pointer_tracks_latest(self, storage):
        a = await storage.create_user("sarah_j", "pw")
        b = await storage.create_user("alex_dev", "pw")
        await storage.create_message(a.id, b.id, "one")
        latest = await storage.create_message(b.id, a.id, "two")

        assert await storage.get_conversation_pointer(a.id, b.id) == latest.id
        assert await storage.get_conversation_pointer(b.id, a.id) == latest.id

    @pytest.mark.asyncio
    async def test_pointer_failure_does_not_lose_message(self, storage, monkeypatch):
        a = await storage.create_user("sarah_j", "pw")
        b = await storage.create_user("alex_dev", "pw")

        async def boom(message):
            raise RuntimeError("pointer store down")

        monkeypatch.setattr(storage, "_update_conversation_pointer", boom)
        message = await storage.create_message(a.id, b.id, "still delivered")

        assert message.content == "still delivered"
        assert [m.id for m in await storage.messages_between(b.id, a.id)] == [message.id]
        assert await storage.get_conversation_pointer(a.id, b.id) is None

    @pytest.mark.asyncio
    async def test_message_to_unknown_user(self, storage):
        a = await storage.create_user("sarah_j", "pw")
        with pytest.raises(NotFoundError):
            await storage.create_message(a.id, 999, "anyone?")

    @pytest.mark.asyncio
    async def test_pointer_never_moves_backwards(self, storage):
        a = await storage.create_user("sarah_j", "pw")
        b = await storage.create_user("alex_dev", "pw")
        older = await storage.create_message(a.id, b.id, "one")
        newer = await storage.create_message(b.id, a.id, "two")

        # A late pointer write for the older message must not win.
        await storage._update_conversation_pointer(older)

        assert await storage.get_conversation_pointer(a.id, b.id) == newer.id


class TestTimestamps:

    @pytest.mark.asyncio
    async def test_reads_return_utc_aware_timestamps(self, storage):
        a = await storage.create_user("sarah_j", "pw")
        b = await storage.create_user("alex_dev", "pw")
        listing = await storage.create_listing(a.id, _listing())
        sent = await storage.create_message(a.id, b.id, "hi")

        user = await storage.get_user(a.id)
        fetched_listing = await storage.get_listing(listing.id)
        thread = await storage.messages_between(b.id, a.id)
        inbox = await storage.conversations_for(b.id)

        for value in (
            user.created_at,
            fetched_listing.created_at,
            thread[0].timestamp,
            inbox[0].last_message_time,
        ):
            assert value.tzinfo is not None
            assert value.utcoffset().total_seconds() == 0
        assert thread[0].timestamp == sent.timestamp
