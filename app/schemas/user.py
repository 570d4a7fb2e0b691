from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional


class UserBadge(BaseModel):
    """Immutable snapshot of a badge at the moment it was awarded."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    description: str
    icon: str
    category: str
    awarded_at: datetime


class UserResponse(BaseModel):
    id: int
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    occupation: Optional[str] = None
    location: Optional[str] = None
    bio: Optional[str] = None
    preferences: list[str] = []
    profile_image: Optional[str] = None
    is_verified: bool = False
    profile_completion: int = 0
    user_badges: list[UserBadge] = []
    created_at: datetime

    model_config = {"from_attributes": True}

    @property
    def display_name(self) -> str:
        full = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return full or self.username


class User(UserResponse):
    """Full user record, including the credential hash."""

    password: str

    def has_badge(self, badge_id: int) -> bool:
        return any(b.id == badge_id for b in self.user_badges)


class UserCreate(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class UserProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    age: Optional[int] = Field(None, ge=18)
    gender: Optional[str] = None
    occupation: Optional[str] = None
    location: Optional[str] = None
    bio: Optional[str] = None
    preferences: Optional[list[str]] = None
    profile_image: Optional[str] = None

    def changes(self) -> dict:
        """Fields the caller explicitly supplied, ready to merge."""
        data = self.model_dump(exclude_unset=True)
        if "preferences" in data and data["preferences"] is None:
            data["preferences"] = []
        return data
