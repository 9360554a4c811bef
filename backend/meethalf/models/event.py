"""Event ORM — a meetup with a time window and an optional meeting point.

Invariants:
    - end_time > start_time (enforced by the service layer)
    - owner_id is the owner's public handle or a guest_* id
    - meeting point is either fully set (lat, lng, name) or absent
    - status transitions: upcoming -> ongoing -> ended (core/arrival.next_event_status)

Design Decisions:
    - cascade delete for members, poke records, share token and invitations;
      passive_deletes leaves the unloaded children to ON DELETE CASCADE
    - members loaded with selectin: nearly every event read needs them
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, Float, Boolean, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from meethalf.db.base import Base


class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    owner_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True,
    )
    end_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    meeting_point_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    meeting_point_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    meeting_point_name: Mapped[str | None] = mapped_column(
        String(200), nullable=True,
    )
    meeting_point_address: Mapped[str | None] = mapped_column(
        String(500), nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="upcoming", index=True,
    )
    use_meet_half: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
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
    members: Mapped[list["Member"]] = relationship(
        "Member", back_populates="event",
        cascade="all, delete-orphan", lazy="selectin",
        order_by="Member.id",
    )
    poke_records: Mapped[list["PokeRecord"]] = relationship(
        "PokeRecord", back_populates="event",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    share_token: Mapped[Optional["ShareToken"]] = relationship(
        "ShareToken", back_populates="event",
        cascade="all, delete-orphan", uselist=False, passive_deletes=True,
    )
    invitations: Mapped[list["EventInvitation"]] = relationship(
        "EventInvitation", back_populates="event",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    @property
    def has_meeting_point(self) -> bool:
        return self.meeting_point_lat is not None and self.meeting_point_lng is not None
