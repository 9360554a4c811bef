"""PokeRecord ORM — one poke from one member to another within an event."""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from meethalf.db.base import Base


class PokeRecord(Base):
    __tablename__ = "poke_records"
    __table_args__ = (
        Index("ix_poke_records_pair", "event_id", "from_member_id", "to_member_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False,
    )
    from_member_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("members.id", ondelete="CASCADE"), nullable=False,
    )
    to_member_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("members.id", ondelete="CASCADE"), nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    event: Mapped["Event"] = relationship("Event", back_populates="poke_records")
