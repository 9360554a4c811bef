"""User ORM — registered accounts created through Google sign-in.

Invariants:
    - id (int) is the internal key carried in user tokens
    - user_id is the public handle; NULL until first-time setup completes
    - email and google_id are unique
    - needs_setup is True from sign-up until complete-setup succeeds

Design Decisions:
    - Members, notifications and friendships reference the public handle, not id:
      guests and offline members share the same column without a users row
"""

from datetime import datetime, timezone

from sqlalchemy import String, Float, Boolean, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from meethalf.db.base import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str | None] = mapped_column(
        String(50), unique=True, nullable=True, index=True,
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    avatar: Mapped[str | None] = mapped_column(String(500), nullable=True)
    google_id: Mapped[str | None] = mapped_column(
        String(100), unique=True, nullable=True,
    )
    provider: Mapped[str] = mapped_column(
        String(20), nullable=False, default="GOOGLE",
    )
    default_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    default_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    default_address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    default_location_name: Mapped[str | None] = mapped_column(
        String(200), nullable=True,
    )
    default_travel_mode: Mapped[str | None] = mapped_column(
        String(20), nullable=True,
    )
    needs_setup: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
