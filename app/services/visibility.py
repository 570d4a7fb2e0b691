"""
Nestmate — Listing visibility rules.

A listing is visible to a viewer when it is public or the viewer owns it.
Both storage backends run this check before any search predicate, and a
hidden listing is reported exactly like a missing one.
"""

from __future__ import annotations

from typing import Iterable, Optional

from app.schemas.listing import Listing


def is_visible(listing: Listing, viewer_id: Optional[int]) -> bool:
    return listing.is_public or (
        viewer_id is not None and listing.user_id == viewer_id
    )


def is_featured_visible(listing: Listing) -> bool:
    """Private listings never reach the public featured feed."""
    return listing.is_public and listing.is_featured


def filter_visible(
    listings: Iterable[Listing], viewer_id: Optional[int]
) -> list[Listing]:
    return [listing for listing in listings if is_visible(listing, viewer_id)]
