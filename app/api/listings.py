"""
Nestmate — Listings API

Browsing respects visibility: private listings are only returned to their
owner, and to everyone else they look exactly like missing ones.
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.deps import get_storage, get_viewer_id, require_viewer_id, split_csv
from app.schemas.listing import (
    Listing,
    ListingCreate,
    ListingFilters,
    ListingVisibilityUpdate,
)
from app.storage.base import Storage

logger = structlog.get_logger("nestmate.api.listings")

router = APIRouter()


@router.get(
    "/",
    response_model=list[Listing],
    summary="Search listings",
)
async def list_listings(
    location: Optional[str] = Query(None),
    min_price: Optional[int] = Query(None, alias="minPrice"),
    max_price: Optional[int] = Query(None, alias="maxPrice"),
    room_type: Optional[str] = Query(None, alias="roomType"),
    amenities: Optional[str] = Query(None, description="Comma-separated amenities"),
    available_now: bool = Query(False, alias="availableNow"),
    viewer_id: Optional[int] = Depends(get_viewer_id),
    storage: Storage = Depends(get_storage),
) -> list[Listing]:
    filters = ListingFilters(
        location=location,
        min_price=min_price,
        max_price=max_price,
        room_type=room_type,
        amenities=split_csv(amenities),
        available_now=available_now,
    )
    return await storage.list_listings(filters, viewer_id=viewer_id)


@router.get(
    "/featured",
    response_model=list[Listing],
    summary="Featured public listings",
)
async def featured_listings(
    storage: Storage = Depends(get_storage),
) -> list[Listing]:
    return await storage.featured_listings()


@router.get(
    "/mine",
    response_model=list[Listing],
    summary="The viewer's own listings",
)
async def my_listings(
    viewer_id: int = Depends(require_viewer_id),
    storage: Storage = Depends(get_storage),
) -> list[Listing]:
    return await storage.list_user_listings(viewer_id)


@router.get(
    "/{listing_id}",
    response_model=Listing,
    summary="Get a listing by ID",
)
async def get_listing(
    listing_id: int,
    viewer_id: Optional[int] = Depends(get_viewer_id),
    storage: Storage = Depends(get_storage),
) -> Listing:
    listing = await storage.get_listing(listing_id, viewer_id=viewer_id)
    if listing is None:
        logger.info("get_listing_not_found", listing_id=listing_id)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Listing not found.",
        )
    return listing


@router.post(
    "/",
    response_model=Listing,
    status_code=status.HTTP_201_CREATED,
    summary="Create a listing",
)
async def create_listing(
    payload: ListingCreate,
    viewer_id: int = Depends(require_viewer_id),
    storage: Storage = Depends(get_storage),
) -> Listing:
    return await storage.create_listing(viewer_id, payload)


@router.patch(
    "/{listing_id}/visibility",
    response_model=Listing,
    summary="Make one of the viewer's listings public or private",
)
async def set_visibility(
    listing_id: int,
    payload: ListingVisibilityUpdate,
    viewer_id: int = Depends(require_viewer_id),
    storage: Storage = Depends(get_storage),
) -> Listing:
    listing = await storage.set_listing_visibility(
        listing_id, viewer_id, payload.is_public
    )
    logger.info(
        "listing_visibility_changed",
        listing_id=listing_id,
        is_public=listing.is_public,
    )
    return listing
