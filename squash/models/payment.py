"""Payment model - one row per (event, participant), created on finalize."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from squash.models.base import Base, UTCDateTime


class Payment(Base):
    """Amount owed by a participant for a finalized event. Tracks a paid flag only."""

    __tablename__ = "payments"
    __table_args__ = (UniqueConstraint("event_id", "participant_id", name="uq_payment_event_participant"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    participant_id: Mapped[str] = mapped_column(ForeignKey("participants.id"), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # Minor currency units
    is_paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    paid_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)  # Set iff is_paid
    reminder_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    personal_message_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)  # DM with "I paid" button

    event: Mapped["Event"] = relationship("Event", back_populates="payments")
