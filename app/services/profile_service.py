"""
Nestmate — Profile Completion & Badge Engine

Completion is the share of nine profile signals that are filled in:
first name, last name, age, gender, occupation, location, bio, at least one
lifestyle preference, and a profile image.

``recompute_and_persist`` writes the percentage back (only when it changed)
and awards one catalog badge per threshold reached (25 / 50 / 75 / 100).
Thresholds are cumulative, awards are idempotent, and a badge is never
taken back when completion later drops.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

import structlog

from app.exceptions import NotFoundError
from app.schemas.badge import BadgeDefinition
from app.schemas.user import User, UserBadge
from app.services.compatibility_service import round_half_up

if TYPE_CHECKING:
    from app.storage.base import Storage

logger = structlog.get_logger("nestmate.profile_service")

# ──────────────────────────────────────────────────────────────────────────────
# Constants
# ──────────────────────────────────────────────────────────────────────────────

COMPLETION_FIELDS: tuple[str, ...] = (
    "first_name",
    "last_name",
    "age",
    "gender",
    "occupation",
    "location",
    "bio",
    "preferences",
    "profile_image",
)

COMPLETION_BADGES: tuple[tuple[int, BadgeDefinition], ...] = (
    (25, BadgeDefinition(
        name="Getting Started",
        description="Filled in a quarter of your profile.",
        icon="🌱",
        category="profile",
        criteria="Profile completion of at least 25%",
        required_points=25,
    )),
    (50, BadgeDefinition(
        name="Halfway There",
        description="Your profile is half complete.",
        icon="🏠",
        category="profile",
        criteria="Profile completion of at least 50%",
        required_points=50,
    )),
    (75, BadgeDefinition(
        name="Almost Complete",
        description="Three quarters of your profile is filled in.",
        icon="⭐",
        category="profile",
        criteria="Profile completion of at least 75%",
        required_points=75,
    )),
    (100, BadgeDefinition(
        name="Profile Pro",
        description="Every part of your profile is complete.",
        icon="🏆",
        category="profile",
        criteria="Profile completion of 100%",
        required_points=100,
    )),
)


def _is_filled(value: object) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set)):
        return len(value) > 0
    return True


def filled_signals(user: User) -> list[str]:
    return [name for name in COMPLETION_FIELDS if _is_filled(getattr(user, name))]


def calculate_completion(user: User) -> int:
    """Return the rounded percentage of completion signals present."""
    filled = len(filled_signals(user))
    return round_half_up(Decimal(100 * filled) / Decimal(len(COMPLETION_FIELDS)))


def badges_due(completion: int) -> list[BadgeDefinition]:
    return [badge for threshold, badge in COMPLETION_BADGES if completion >= threshold]


@dataclass
class CompletionResult:
    completion: int
    newly_awarded: list[UserBadge] = field(default_factory=list)


class ProfileService:
    """Keeps ``profile_completion`` and completion badges in step.

    Works against any ``Storage`` implementation; profile updates do not call
    it implicitly, the caller decides when to recompute.
    """

    def __init__(self, storage: "Storage") -> None:
        self.storage = storage

    async def recompute_and_persist(self, user_id: int) -> CompletionResult:
        log = logger.bind(user_id=user_id)

        user = await self.storage.get_user(user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        completion = calculate_completion(user)
        previous = user.profile_completion
        if completion != previous:
            user = await self.storage.set_profile_completion(user_id, completion)
            log.info(
                "profile_completion_updated",
                previous=previous,
                completion=completion,
            )

        held = {badge.id for badge in user.user_badges}
        newly_awarded: list[UserBadge] = []

        for definition in badges_due(completion):
            badge = await self.storage.ensure_badge(definition)
            if badge.id in held:
                continue
            held.add(badge.id)
            # None when a concurrent recompute got there first.
            awarded = await self.storage.award_badge(user_id, badge.id)
            if awarded is not None:
                newly_awarded.append(awarded)

        if newly_awarded:
            log.info(
                "badges_awarded",
                badges=[b.name for b in newly_awarded],
                completion=completion,
            )

        return CompletionResult(completion=completion, newly_awarded=newly_awarded)
