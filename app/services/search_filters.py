"""
Nestmate — Search predicates for roommates and listings.

Every supplied filter narrows the result (AND); tag filters match when any
requested tag is present (OR within the filter).  A filter left at ``None``
means "no constraint".  The in-memory backend evaluates these predicates
directly; the SQL backend pushes the scalar ones into its query and reuses
``matches_any`` for the tag lists.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

from app.schemas.listing import Listing, ListingFilters
from app.schemas.roommate import Roommate, RoommateFilters


def matches_any(values: Optional[Iterable[str]], wanted: Optional[Iterable[str]]) -> bool:
    wanted = list(wanted or ())
    if not wanted:
        return True
    present = set(values or ())
    return any(tag in present for tag in wanted)


def _contains_ci(haystack: Optional[str], needle: Optional[str]) -> bool:
    if not needle:
        return True
    return haystack is not None and needle.lower() in haystack.lower()


def roommate_matches(roommate: Roommate, filters: Optional[RoommateFilters]) -> bool:
    if filters is None:
        return True
    if not _contains_ci(roommate.location, filters.location):
        return False
    if filters.min_age is not None and (roommate.age is None or roommate.age < filters.min_age):
        return False
    if filters.max_age is not None and (roommate.age is None or roommate.age > filters.max_age):
        return False
    if filters.gender and roommate.gender != filters.gender:
        return False
    if not matches_any(roommate.preferences, filters.lifestyle):
        return False
    if filters.is_verified and not roommate.is_verified:
        return False
    return True


def listing_matches(
    listing: Listing,
    filters: Optional[ListingFilters],
    today: Optional[date] = None,
) -> bool:
    """Evaluate the search predicates; visibility is checked separately."""
    if filters is None:
        return True
    if not _contains_ci(listing.location, filters.location):
        return False
    if filters.min_price is not None and listing.price < filters.min_price:
        return False
    if filters.max_price is not None and listing.price > filters.max_price:
        return False
    if filters.room_type and listing.room_type != filters.room_type:
        return False
    if not matches_any(listing.amenities, filters.amenities):
        return False
    if filters.available_now and listing.available_from > (today or date.today()):
        return False
    return True
