"""
Nestmate — Roommates API

Roommate search and the viewer's top compatibility matches.
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query

from app.api.deps import get_storage, require_viewer_id, split_csv
from app.schemas.roommate import Roommate, RoommateFilters, RoommateResponse
from app.storage.base import Storage

logger = structlog.get_logger("nestmate.api.roommates")

router = APIRouter()


@router.get(
    "/",
    response_model=list[RoommateResponse],
    summary="Search roommates",
)
async def list_roommates(
    location: Optional[str] = Query(None),
    min_age: Optional[int] = Query(None, alias="minAge"),
    max_age: Optional[int] = Query(None, alias="maxAge"),
    gender: Optional[str] = Query(None),
    lifestyle: Optional[str] = Query(None, description="Comma-separated tags"),
    is_verified: bool = Query(False, alias="isVerified"),
    viewer_id: int = Depends(require_viewer_id),
    storage: Storage = Depends(get_storage),
) -> list[Roommate]:
    filters = RoommateFilters(
        location=location,
        min_age=min_age,
        max_age=max_age,
        gender=gender,
        lifestyle=split_csv(lifestyle),
        is_verified=is_verified,
    )
    roommates = await storage.list_roommates(filters)
    logger.info("list_roommates", viewer_id=viewer_id, results=len(roommates))
    return roommates


@router.get(
    "/top-matches",
    response_model=list[RoommateResponse],
    summary="Best roommate matches for the viewer",
)
async def top_matches(
    viewer_id: int = Depends(require_viewer_id),
    storage: Storage = Depends(get_storage),
) -> list[Roommate]:
    matches = await storage.top_matches(viewer_id)
    logger.info("top_matches", viewer_id=viewer_id, results=len(matches))
    return matches
