"""
Nestmate — Roommate Compatibility Engine

Scores a pair of users on three factors and blends them:

  lifestyle = round(100 × |tags_a ∩ tags_b| / |tags_a ∪ tags_b|)   (50 with no tags)
  location  = 100 exact, 75 partial, 50 otherwise
  schedule  = 100 same rhythm, 30 opposite, 70 unknown
  overall   = round(w_life × lifestyle + w_loc × location + w_sched × schedule)

Location is "partial" when one normalised location contains the other or the
two share a comma-separated component, so "Brooklyn, NY" vs "Williamsburg,
Brooklyn" and "New York, NY" vs "Albany, NY" both score 75.

Default weights: lifestyle=0.5, location=0.3, schedule=0.2.  All rounding is
half-up and the overall score is rounded once, on the weighted sum.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence

import structlog

from app.config import get_settings
from app.schemas.roommate import CompatibilityDetails, Roommate
from app.schemas.user import User

logger = structlog.get_logger("nestmate.compatibility_service")

# ──────────────────────────────────────────────────────────────────────────────
# Constants
# ──────────────────────────────────────────────────────────────────────────────

# Mutually exclusive daily-rhythm tags used for the schedule factor.
SCHEDULE_TAGS: frozenset[str] = frozenset({"Early bird", "Night owl"})

_NEUTRAL_LIFESTYLE = 50
_LOCATION_EXACT = 100
_LOCATION_PARTIAL = 75
_LOCATION_NONE = 50
_SCHEDULE_SHARED = 100
_SCHEDULE_CLASH = 30
_SCHEDULE_UNKNOWN = 70


def round_half_up(value: Decimal | float | int) -> int:
    """Round to the nearest integer with .5 going up (not banker's rounding)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _unique(tags: Optional[Iterable[str]]) -> list[str]:
    """Deduplicate while keeping first-seen order."""
    seen: dict[str, None] = {}
    for tag in tags or ():
        seen.setdefault(tag, None)
    return list(seen)


def _normalise_location(location: Optional[str]) -> str:
    return (location or "").strip().lower()


def _location_parts(location: str) -> set[str]:
    return {part.strip() for part in location.split(",") if part.strip()}


class CompatibilityService:
    """Deterministic, side-effect-free pairwise compatibility scoring.

    Weights are read from configuration at construction so a single instance
    scores every candidate of a ``top_matches`` call consistently.
    """

    def __init__(
        self,
        lifestyle_weight: float | None = None,
        location_weight: float | None = None,
        schedule_weight: float | None = None,
    ) -> None:
        settings = get_settings()
        self.w_lifestyle = Decimal(str(
            settings.LIFESTYLE_WEIGHT if lifestyle_weight is None else lifestyle_weight
        ))
        self.w_location = Decimal(str(
            settings.LOCATION_WEIGHT if location_weight is None else location_weight
        ))
        self.w_schedule = Decimal(str(
            settings.SCHEDULE_WEIGHT if schedule_weight is None else schedule_weight
        ))

    # ── Public API ────────────────────────────────────────────────────────

    def score(self, a: User, b: User) -> CompatibilityDetails:
        """Score ``a`` against ``b``.

        ``common_tags`` follows ``a``'s preference order; every numeric
        field is symmetric in its arguments.
        """
        tags_a = _unique(a.preferences)
        tags_b = _unique(b.preferences)

        lifestyle, common = self._lifestyle_score(tags_a, tags_b)
        location = self._location_score(a.location, b.location)
        schedule = self._schedule_score(tags_a, tags_b)

        weighted = (
            self.w_lifestyle * lifestyle
            + self.w_location * location
            + self.w_schedule * schedule
        )

        return CompatibilityDetails(
            lifestyle=lifestyle,
            location=location,
            schedule=schedule,
            overall=round_half_up(weighted),
            common_tags=common,
        )

    def rank(
        self,
        user: User,
        candidates: Sequence[Roommate],
        limit: int | None = None,
    ) -> list[Roommate]:
        """Attach a score to every candidate except ``user`` and sort.

        Sorting is stable: equal scores keep the candidates' input order.
        """
        scored: list[Roommate] = []
        for candidate in candidates:
            if candidate.id == user.id:
                continue
            details = self.score(user, candidate)
            scored.append(candidate.model_copy(update={"compatibility": details}))

        scored.sort(key=lambda r: r.compatibility.overall, reverse=True)

        logger.debug(
            "candidates_ranked",
            user_id=user.id,
            candidates=len(scored),
            limit=limit,
        )
        return scored if limit is None else scored[:limit]

    # ── Factors ──────────────────────────────────────────────────────────

    @staticmethod
    def _lifestyle_score(
        tags_a: list[str], tags_b: list[str]
    ) -> tuple[int, list[str]]:
        set_b = set(tags_b)
        common = [tag for tag in tags_a if tag in set_b]
        total = len(set(tags_a) | set_b)
        if total == 0:
            return _NEUTRAL_LIFESTYLE, common
        return round_half_up(Decimal(100 * len(common)) / Decimal(total)), common

    @staticmethod
    def _location_score(loc_a: Optional[str], loc_b: Optional[str]) -> int:
        a = _normalise_location(loc_a)
        b = _normalise_location(loc_b)
        if not a or not b:
            return _LOCATION_NONE
        if a == b:
            return _LOCATION_EXACT
        if a in b or b in a:
            return _LOCATION_PARTIAL
        if _location_parts(a) & _location_parts(b):
            return _LOCATION_PARTIAL
        return _LOCATION_NONE

    @staticmethod
    def _schedule_score(tags_a: list[str], tags_b: list[str]) -> int:
        rhythm_a = SCHEDULE_TAGS.intersection(tags_a)
        rhythm_b = SCHEDULE_TAGS.intersection(tags_b)
        if not rhythm_a or not rhythm_b:
            return _SCHEDULE_UNKNOWN
        return _SCHEDULE_SHARED if rhythm_a & rhythm_b else _SCHEDULE_CLASH
