"""
Nestmate — Users API

Registration, the viewer's own profile, roommate details, and badges.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_storage, require_viewer_id
from app.schemas.roommate import Roommate, RoommateResponse, RoommateUpdate
from app.schemas.user import (
    User,
    UserBadge,
    UserCreate,
    UserProfileUpdate,
    UserResponse,
)
from app.services.profile_service import ProfileService
from app.storage.base import Storage

logger = structlog.get_logger("nestmate.api.users")

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# POST / — Register a new user
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def create_user(
    payload: UserCreate,
    storage: Storage = Depends(get_storage),
) -> User:
    """Create an account; a taken username yields 409."""
    log = logger.bind(username=payload.username)
    log.info("create_user_start")

    user = await storage.create_user(payload.username, payload.password)

    log.info("create_user_complete", user_id=user.id)
    return user


# ──────────────────────────────────────────────────────────────────────────────
# GET /me — Current profile
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get the viewer's profile",
)
async def get_profile(
    viewer_id: int = Depends(require_viewer_id),
    storage: Storage = Depends(get_storage),
) -> User:
    user = await storage.get_user(viewer_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found.",
        )
    return user


# ──────────────────────────────────────────────────────────────────────────────
# PUT /me — Update profile
# ──────────────────────────────────────────────────────────────────────────────

@router.put(
    "/me",
    response_model=UserResponse,
    summary="Update the viewer's profile",
)
async def update_profile(
    payload: UserProfileUpdate,
    viewer_id: int = Depends(require_viewer_id),
    storage: Storage = Depends(get_storage),
) -> User:
    """Merge the supplied fields, then refresh completion and badges.

    Only fields present in the request body are applied.
    """
    log = logger.bind(user_id=viewer_id)
    log.info("update_profile_start", fields=sorted(payload.model_fields_set))

    await storage.update_user_profile(viewer_id, payload)
    result = await ProfileService(storage).recompute_and_persist(viewer_id)

    log.info(
        "update_profile_complete",
        completion=result.completion,
        new_badges=len(result.newly_awarded),
    )
    return await storage.get_user(viewer_id)


# ──────────────────────────────────────────────────────────────────────────────
# PUT /me/roommate — Roommate-search details
# ──────────────────────────────────────────────────────────────────────────────

@router.put(
    "/me/roommate",
    response_model=RoommateResponse,
    summary="Create or update the viewer's roommate details",
)
async def upsert_roommate(
    payload: RoommateUpdate,
    viewer_id: int = Depends(require_viewer_id),
    storage: Storage = Depends(get_storage),
) -> Roommate:
    return await storage.upsert_roommate(viewer_id, payload)


# ──────────────────────────────────────────────────────────────────────────────
# GET /me/badges — Earned badges
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/me/badges",
    response_model=list[UserBadge],
    summary="List the viewer's badges",
)
async def list_badges(
    viewer_id: int = Depends(require_viewer_id),
    storage: Storage = Depends(get_storage),
) -> list[UserBadge]:
    return await storage.get_user_badges(viewer_id)
