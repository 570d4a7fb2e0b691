"""
Nestmate — Main API Router

Aggregates all sub-routers under a single prefix so that ``app.main``
can mount the entire API surface with one ``include_router`` call.
"""

from fastapi import APIRouter

from app.api import listings, messages, roommates, users

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(roommates.router, prefix="/roommates", tags=["Roommates"])
router.include_router(listings.router, prefix="/listings", tags=["Listings"])
router.include_router(messages.router, prefix="/messages", tags=["Messages"])
