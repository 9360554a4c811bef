"""Member ORM — one participant of one event.

Invariants:
    - (event_id, user_id) is unique; NULL user_id rows (offline members) never collide
    - user_id is a public handle, a guest_* id, or NULL for an offline member
    - arrival_time is set at most once
"""

from datetime import datetime, timezone

from sqlalchemy import (
    String, Float, Boolean, DateTime, Integer, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from meethalf.db.base import Base


class Member(Base):
    __tablename__ = "members"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_members_event_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    user_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True, index=True,
    )
    nickname: Mapped[str | None] = mapped_column(String(100), nullable=True)
    lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    travel_mode: Mapped[str] = mapped_column(
        String(20), nullable=False, default="driving",
    )
    share_location: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    arrival_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
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

    # Relationships
    event: Mapped["Event"] = relationship("Event", back_populates="members")

    @property
    def is_offline(self) -> bool:
        return self.user_id is None

    @property
    def has_location(self) -> bool:
        return self.lat is not None and self.lng is not None
