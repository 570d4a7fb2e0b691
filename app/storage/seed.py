"""
Nestmate — Demo data.

Three roommate seekers, one listing each (all featured), and a short thread
between the first two users.  Everything goes through the ``Storage``
contract, so the same seed works on either backend.  Seeding is skipped when
the first demo user already exists.
"""

from __future__ import annotations

from datetime import date

import structlog

from app.schemas.listing import ListingCreate
from app.schemas.roommate import RoommateUpdate
from app.schemas.user import UserProfileUpdate
from app.services.profile_service import ProfileService
from app.storage.base import Storage

logger = structlog.get_logger("nestmate.storage.seed")

DEMO_PASSWORD = "password123"

DEMO_USERS = [
    {
        "username": "sarah_j",
        "profile": UserProfileUpdate(
            first_name="Sarah",
            last_name="Johnson",
            age=28,
            gender="female",
            occupation="Marketing Manager",
            location="Downtown, New York",
            bio=(
                "I'm a tidy, social professional looking for a compatible roommate. "
                "I enjoy cooking and quiet evenings during the week, but I'm social "
                "on weekends."
            ),
            preferences=["Non-smoker", "Early bird", "Clean", "Pet-friendly"],
            profile_image="https://images.unsplash.com/photo-1573496359142-b8d87734a5a2",
        ),
        "roommate": RoommateUpdate(
            budget=1200, move_in_date="2023-09-01", duration="1 year",
            is_looking_for_room=True,
        ),
        "listing": ListingCreate(
            title="Modern Studio Apartment",
            description=(
                "Beautiful, newly renovated studio in the heart of East Village. "
                "Close to restaurants, bars, and public transportation."
            ),
            location="East Village, New York",
            price=1200,
            room_type="Private Room",
            roommates=1,
            available_from=date(2023, 8, 1),
            amenities=["Furnished", "Utilities Included", "WiFi"],
            images=["https://images.unsplash.com/photo-1522708323590-d24dbb6b0267"],
        ),
    },
    {
        "username": "alex_dev",
        "profile": UserProfileUpdate(
            first_name="Alex",
            last_name="Chen",
            age=26,
            gender="male",
            occupation="Software Developer",
            location="Williamsburg, Brooklyn",
            bio=(
                "Software developer who works from home most days. I'm quiet, clean, "
                "and respect personal space."
            ),
            preferences=["Non-smoker", "Night owl", "Organized", "Quiet"],
            profile_image="https://images.unsplash.com/photo-1463453091185-61582044d556",
        ),
        "roommate": RoommateUpdate(
            budget=1350, move_in_date="2023-08-15", duration="6+ months",
            is_looking_for_room=True,
        ),
        "listing": ListingCreate(
            title="Spacious Room in Shared Apartment",
            description=(
                "Large private room in a 2-bedroom apartment. The space is bright, "
                "clean, and in a great neighborhood."
            ),
            location="Williamsburg, Brooklyn",
            price=950,
            room_type="Private Room",
            roommates=2,
            available_from=date(2023, 9, 1),
            amenities=["Partially Furnished", "Laundry", "Balcony"],
            images=["https://images.unsplash.com/photo-1560448204-e02f11c3d0e2"],
        ),
    },
    {
        "username": "jamie_g",
        "profile": UserProfileUpdate(
            first_name="Jamie",
            last_name="Garcia",
            age=24,
            gender="non-binary",
            occupation="Graphic Designer",
            location="Chelsea, New York",
            bio=(
                "Creative soul who enjoys art, music, and good conversation. Looking "
                "for a roommate who appreciates a vibrant living space."
            ),
            preferences=["Non-smoker", "Flexible schedule", "Creative", "Social"],
            profile_image="https://images.unsplash.com/photo-1542206395-9feb3edaa68d",
        ),
        "roommate": RoommateUpdate(
            budget=1100, move_in_date="2023-10-01", duration="1+ year",
            is_looking_for_room=True,
        ),
        "listing": ListingCreate(
            title="Cozy Room in Brownstone",
            description=(
                "Charming room in a historic brownstone with lots of character. "
                "Shared living room and kitchen with 3 creative professionals."
            ),
            location="Park Slope, Brooklyn",
            price=1100,
            room_type="Private Room",
            roommates=3,
            available_from=date(2023, 10, 15),
            amenities=["Furnished", "Garden Access", "Pets Allowed"],
            images=["https://images.unsplash.com/photo-1502672260266-1c1ef2d93688"],
        ),
    },
]


async def seed_demo_data(storage: Storage) -> bool:
    """Populate ``storage`` with demo records.  Returns False if skipped."""
    if await storage.get_user_by_username(DEMO_USERS[0]["username"]) is not None:
        logger.info("seed_skipped", reason="demo users already exist")
        return False

    profiles = ProfileService(storage)
    user_ids: list[int] = []

    for spec in DEMO_USERS:
        user = await storage.create_user(spec["username"], DEMO_PASSWORD)
        await storage.update_user_profile(user.id, spec["profile"])
        await storage.set_user_verified(user.id, True)
        await storage.upsert_roommate(user.id, spec["roommate"])
        await profiles.recompute_and_persist(user.id)

        listing = await storage.create_listing(user.id, spec["listing"])
        await storage.set_listing_featured(listing.id, True)
        user_ids.append(user.id)

    sarah, alex = user_ids[0], user_ids[1]
    await storage.create_message(
        sarah, alex,
        "Hi! I saw your profile and think we might be compatible roommates. "
        "Are you still looking?",
    )
    await storage.messages_between(alex, sarah)
    await storage.create_message(
        alex, sarah,
        "Hey Sarah! Yes, I'm still looking. Your profile looks great. Would you "
        "like to chat more about our preferences?",
    )
    await storage.messages_between(sarah, alex)
    await storage.create_message(
        sarah, alex,
        "Definitely! I noticed we both prefer a clean living space. What are your "
        "typical work hours like?",
    )

    logger.info("seed_complete", users=len(user_ids), backend=storage.backend_name)
    return True
