"""HTTP tests for the Nestmate API, backed by a fresh in-memory store."""
from datetime import date

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.api.deps import get_storage
from app.main import app
from app.storage.memory import MemoryStorage


@pytest_asyncio.fixture
async def api_storage():
    storage = MemoryStorage()
    app.dependency_overrides[get_storage] = lambda: storage
    yield storage
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(api_storage):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _register(client, username) -> int:
    response = await client.post(
        "/api/v1/users/", json={"username": username, "password": "pw"}
    )
    assert response.status_code == 201
    return response.json()["id"]


def _as(user_id: int) -> dict:
    return {"X-User-Id": str(user_id)}


LISTING = {
    "title": "Modern Studio",
    "description": "Bright.",
    "location": "East Village, New York",
    "price": 1200,
    "room_type": "Private Room",
    "available_from": date(2024, 6, 1).isoformat(),
    "amenities": ["WiFi"],
    # server-controlled, ignored
    "is_featured": True,
}


class TestHealth:

    @pytest.mark.asyncio
    async def test_liveness(self, client):
        response = await client.get("/health")
        assert response.json() == {"status": "healthy"}


class TestUsersApi:

    @pytest.mark.asyncio
    async def test_register_hides_password(self, client):
        response = await client.post(
            "/api/v1/users/", json={"username": "sarah_j", "password": "pw"}
        )
        body = response.json()
        assert response.status_code == 201
        assert body["username"] == "sarah_j"
        assert "password" not in body

    @pytest.mark.asyncio
    async def test_duplicate_username_conflicts(self, client):
        await _register(client, "sarah_j")
        response = await client.post(
            "/api/v1/users/", json={"username": "sarah_j", "password": "pw"}
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_me_requires_viewer(self, client):
        assert (await client.get("/api/v1/users/me")).status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_viewer(self, client):
        response = await client.get("/api/v1/users/me", headers=_as(999))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_update_profile_awards_badges(self, client):
        user_id = await _register(client, "sarah_j")
        response = await client.put(
            "/api/v1/users/me",
            headers=_as(user_id),
            json={"first_name": "Sarah", "last_name": "Johnson", "age": 28},
        )
        body = response.json()
        assert response.status_code == 200
        assert body["profile_completion"] == 33
        assert [b["name"] for b in body["user_badges"]] == ["Getting Started"]

        badges = await client.get("/api/v1/users/me/badges", headers=_as(user_id))
        assert [b["icon"] for b in badges.json()] == ["🌱"]

    @pytest.mark.asyncio
    async def test_underage_rejected(self, client):
        user_id = await _register(client, "sarah_j")
        response = await client.put(
            "/api/v1/users/me", headers=_as(user_id), json={"age": 17}
        )
        assert response.status_code == 422


class TestRoommatesApi:

    @pytest.mark.asyncio
    async def test_search_and_top_matches(self, client):
        me = await _register(client, "sarah_j")
        other = await _register(client, "alex_dev")
        for user_id, tags in ((me, ["Clean", "Early bird"]), (other, ["Clean", "Night owl"])):
            await client.put(
                "/api/v1/users/me", headers=_as(user_id), json={"preferences": tags}
            )
            await client.put(
                "/api/v1/users/me/roommate", headers=_as(user_id), json={"budget": 1000}
            )

        search = await client.get(
            "/api/v1/roommates/", headers=_as(me), params={"lifestyle": "Night owl,Quiet"}
        )
        assert [r["username"] for r in search.json()] == ["alex_dev"]

        top = await client.get("/api/v1/roommates/top-matches", headers=_as(me))
        matches = top.json()
        assert [m["id"] for m in matches] == [other]
        assert matches[0]["compatibility"]["schedule"] == 30
        assert "password" not in matches[0]


class TestListingsApi:

    @pytest.mark.asyncio
    async def test_create_ignores_server_fields(self, client):
        owner = await _register(client, "sarah_j")
        response = await client.post("/api/v1/listings/", headers=_as(owner), json=LISTING)
        assert response.status_code == 201
        assert response.json()["is_featured"] is False
        assert response.json()["user_id"] == owner

    @pytest.mark.asyncio
    async def test_private_listing_is_404_for_others(self, client):
        owner = await _register(client, "sarah_j")
        other = await _register(client, "alex_dev")
        listing_id = (
            await client.post("/api/v1/listings/", headers=_as(owner), json=LISTING)
        ).json()["id"]

        response = await client.patch(
            f"/api/v1/listings/{listing_id}/visibility",
            headers=_as(owner),
            json={"is_public": False},
        )
        assert response.json()["is_public"] is False

        assert (await client.get(f"/api/v1/listings/{listing_id}", headers=_as(owner))).status_code == 200
        assert (await client.get(f"/api/v1/listings/{listing_id}", headers=_as(other))).status_code == 404
        assert (await client.get(f"/api/v1/listings/{listing_id}")).status_code == 404
        assert (await client.get("/api/v1/listings/")).json() == []
        mine = await client.get("/api/v1/listings/mine", headers=_as(owner))
        assert [l["id"] for l in mine.json()] == [listing_id]

    @pytest.mark.asyncio
    async def test_visibility_change_by_non_owner(self, client):
        owner = await _register(client, "sarah_j")
        other = await _register(client, "alex_dev")
        listing_id = (
            await client.post("/api/v1/listings/", headers=_as(owner), json=LISTING)
        ).json()["id"]

        response = await client.patch(
            f"/api/v1/listings/{listing_id}/visibility",
            headers=_as(other),
            json={"is_public": False},
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_search_by_price(self, client):
        owner = await _register(client, "sarah_j")
        await client.post("/api/v1/listings/", headers=_as(owner), json=LISTING)
        response = await client.get("/api/v1/listings/", params={"maxPrice": 1000})
        assert response.json() == []


class TestMessagesApi:

    @pytest.mark.asyncio
    async def test_send_read_and_inbox(self, client):
        sarah = await _register(client, "sarah_j")
        alex = await _register(client, "alex_dev")

        sent = await client.post(
            "/api/v1/messages/", headers=_as(sarah), json={"receiver_id": alex, "content": "hi"}
        )
        assert sent.status_code == 201

        inbox = (await client.get("/api/v1/messages/conversations", headers=_as(alex))).json()
        assert inbox[0]["user_id"] == sarah
        assert inbox[0]["name"] == "sarah_j"
        assert inbox[0]["read"] is False

        thread = await client.get(f"/api/v1/messages/conversation/{sarah}", headers=_as(alex))
        assert [m["content"] for m in thread.json()] == ["hi"]
        assert thread.json()[0]["read"] is True

        inbox = (await client.get("/api/v1/messages/conversations", headers=_as(alex))).json()
        assert inbox[0]["read"] is True

    @pytest.mark.asyncio
    async def test_message_to_unknown_user(self, client):
        sarah = await _register(client, "sarah_j")
        response = await client.post(
            "/api/v1/messages/", headers=_as(sarah), json={"receiver_id": 999, "content": "hi"}
        )
        assert response.status_code == 404
