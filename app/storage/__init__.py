"""
Nestmate — Storage backend selection.

Selection happens once per process:

* ``REQUIRE_DURABLE_STORAGE`` without ``DATABASE_URL`` is a fatal
  misconfiguration (``DependencyUnavailableError``).
* No ``DATABASE_URL`` selects ``MemoryStorage``.
* Otherwise ``SqlStorage`` is built on an async engine for that URL; an
  unreachable database fails ``open_storage`` instead of individual calls.
"""

from __future__ import annotations

from typing import Optional

import structlog

from app.config import Settings, get_settings
from app.database import build_engine
from app.exceptions import DependencyUnavailableError
from app.storage.base import Storage
from app.storage.memory import MemoryStorage
from app.storage.sql import SqlStorage

logger = structlog.get_logger("nestmate.storage")

__all__ = [
    "MemoryStorage",
    "SqlStorage",
    "Storage",
    "build_storage",
    "open_storage",
]


def build_storage(settings: Optional[Settings] = None) -> Storage:
    """Construct (but do not connect) the configured backend."""
    settings = settings or get_settings()

    if not settings.use_durable_storage:
        if settings.REQUIRE_DURABLE_STORAGE:
            raise DependencyUnavailableError(
                "REQUIRE_DURABLE_STORAGE is set but DATABASE_URL is not configured"
            )
        logger.info("storage_backend_selected", backend=MemoryStorage.backend_name)
        return MemoryStorage()

    engine = build_engine(settings.DATABASE_URL, echo=settings.DB_ECHO)
    logger.info(
        "storage_backend_selected",
        backend=SqlStorage.backend_name,
        dialect=engine.dialect.name,
    )
    return SqlStorage(engine)


async def open_storage(settings: Optional[Settings] = None) -> Storage:
    """Build, initialise, and optionally seed the configured backend."""
    settings = settings or get_settings()
    storage = build_storage(settings)
    await storage.initialize()

    if settings.SEED_DEMO_DATA:
        from app.storage.seed import seed_demo_data

        await seed_demo_data(storage)

    return storage
