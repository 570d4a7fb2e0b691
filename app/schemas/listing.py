from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional


class Listing(BaseModel):
    id: int
    user_id: int
    title: str
    description: str
    location: str
    price: int
    room_type: str
    roommates: int = 0
    available_from: date
    amenities: list[str] = []
    images: list[str] = []
    is_public: bool = True
    is_featured: bool = False
    rating: int = 0
    created_at: datetime

    model_config = {"from_attributes": True}


class ListingCreate(BaseModel):
    """Client-supplied listing fields.

    Visibility, featured status, and rating are server-controlled and are
    silently ignored if a client sends them.
    """

    title: str = Field(min_length=1)
    description: str
    location: str
    price: int = Field(ge=0)
    room_type: str
    roommates: int = Field(0, ge=0)
    available_from: date
    amenities: Optional[list[str]] = None
    images: Optional[list[str]] = None


class ListingVisibilityUpdate(BaseModel):
    is_public: bool


class ListingFilters(BaseModel):
    location: Optional[str] = None
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    room_type: Optional[str] = None
    amenities: Optional[list[str]] = None
    available_now: bool = False
