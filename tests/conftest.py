"""Shared pytest fixtures for Nestmate tests."""
from datetime import datetime, timezone

import pytest
import pytest_asyncio

from app.database import build_engine
from app.schemas.user import User
from app.storage.memory import MemoryStorage
from app.storage.sql import SqlStorage

SQLITE_MEMORY_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def make_user():
    """Factory for detached ``User`` records (no storage involved)."""
    counter = iter(range(1, 10_000))

    def _make(**fields) -> User:
        user_id = fields.pop("id", None) or next(counter)
        defaults = {
            "id": user_id,
            "username": f"user{user_id}",
            "password": "x" * 64,
            "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
        }
        defaults.update(fields)
        return User(**defaults)

    return _make


@pytest.fixture
def complete_profile():
    """Profile fields that fill all nine completion signals."""
    return {
        "first_name": "Sarah",
        "last_name": "Johnson",
        "age": 28,
        "gender": "female",
        "occupation": "Marketing Manager",
        "location": "Downtown, New York",
        "bio": "Tidy and social.",
        "preferences": ["Non-smoker", "Early bird"],
        "profile_image": "https://example.com/sarah.jpg",
    }


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest_asyncio.fixture(params=["memory", "sql"])
async def storage(request):
    """Every contract test runs once per backend."""
    if request.param == "memory":
        yield MemoryStorage()
        return

    backend = SqlStorage(build_engine(SQLITE_MEMORY_URL))
    await backend.initialize()
    try:
        yield backend
    finally:
        await backend.close()
