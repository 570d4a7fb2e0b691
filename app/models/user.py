"""
Nestmate — User and roommate-extension models.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, JSONType, UTCDateTime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(
        String, unique=True, index=True, nullable=False
    )
    password: Mapped[str] = mapped_column(
        String, nullable=False, comment="SHA-256 hex digest"
    )
    first_name: Mapped[str | None] = mapped_column(String, nullable=True)
    last_name: Mapped[str | None] = mapped_column(String, nullable=True)
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    gender: Mapped[str | None] = mapped_column(String, nullable=True)
    occupation: Mapped[str | None] = mapped_column(String, nullable=True)
    location: Mapped[str | None] = mapped_column(String, nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    preferences: Mapped[list] = mapped_column(
        JSONType, nullable=False, default=list, comment="Lifestyle tags"
    )
    profile_image: Mapped[str | None] = mapped_column(String, nullable=True)
    is_verified: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    profile_completion: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False, comment="0-100"
    )
    user_badges: Mapped[list] = mapped_column(
        JSONType, nullable=False, default=list, comment="Awarded badge snapshots"
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=_utcnow, nullable=False
    )

    # ── Relationships ──────────────────────────────────────────────
    roommate_profile: Mapped["RoommateProfile"] = relationship(
        "RoommateProfile", back_populates="user", uselist=False
    )

    def __repr__(self) -> str:
        return f"<User {self.username!r} id={self.id}>"


class RoommateProfile(Base):
    __tablename__ = "roommates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    budget: Mapped[int | None] = mapped_column(Integer, nullable=True)
    move_in_date: Mapped[str | None] = mapped_column(String, nullable=True)
    duration: Mapped[str | None] = mapped_column(String, nullable=True)
    is_looking_for_room: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )

    # ── Relationships ──────────────────────────────────────────────
    user: Mapped["User"] = relationship("User", back_populates="roommate_profile")

    def __repr__(self) -> str:
        return f"<RoommateProfile user_id={self.user_id}>"
