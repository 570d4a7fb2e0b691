from pydantic import BaseModel, Field
from typing import Optional

from app.schemas.user import User, UserResponse


class CompatibilityDetails(BaseModel):
    lifestyle: int
    location: int
    schedule: int
    overall: int
    common_tags: list[str] = []


class RoommateDetails(BaseModel):
    user_id: int
    budget: Optional[int] = None
    move_in_date: Optional[str] = None
    duration: Optional[str] = None
    is_looking_for_room: bool = True

    model_config = {"from_attributes": True}


class RoommateUpdate(BaseModel):
    budget: Optional[int] = Field(None, ge=0)
    move_in_date: Optional[str] = None
    duration: Optional[str] = None
    is_looking_for_room: Optional[bool] = None


class RoommateResponse(UserResponse):
    budget: Optional[int] = None
    move_in_date: Optional[str] = None
    duration: Optional[str] = None
    is_looking_for_room: bool = True
    compatibility: Optional[CompatibilityDetails] = None


class Roommate(User):
    """A user joined with its roommate extension; ``id`` is the user id."""

    budget: Optional[int] = None
    move_in_date: Optional[str] = None
    duration: Optional[str] = None
    is_looking_for_room: bool = True
    compatibility: Optional[CompatibilityDetails] = None

    @classmethod
    def join(cls, user: User, details: RoommateDetails) -> "Roommate":
        return cls(
            **user.model_dump(),
            budget=details.budget,
            move_in_date=details.move_in_date,
            duration=details.duration,
            is_looking_for_room=details.is_looking_for_room,
        )


class RoommateFilters(BaseModel):
    location: Optional[str] = None
    min_age: Optional[int] = None
    max_age: Optional[int] = None
    gender: Optional[str] = None
    lifestyle: Optional[list[str]] = None
    is_verified: bool = False
