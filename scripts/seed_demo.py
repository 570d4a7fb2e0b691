"""Seed the demo users, listings, and message thread into the configured backend."""
import asyncio
import sys
sys.path.insert(0, ".")

from app.config import get_settings
from app.storage import open_storage
from app.storage.seed import seed_demo_data


async def seed():
    settings = get_settings()
    # open_storage seeds by itself when SEED_DEMO_DATA is set.
    storage = await open_storage(settings.model_copy(update={"SEED_DEMO_DATA": False}))
    try:
        if await seed_demo_data(storage):
            print(f"  Seeded demo data into the {storage.backend_name} backend.")
        else:
            print("  Demo users already exist, skipping.")
    finally:
        await storage.close()
    print("Done seeding demo data.")


if __name__ == "__main__":
    asyncio.run(seed())
