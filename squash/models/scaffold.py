"""Scaffold model - weekly template that spawns events."""
from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from squash.models.base import Base, UTCDateTime


class DayOfWeek(str, enum.Enum):
    MON = "Mon"
    TUE = "Tue"
    WED = "Wed"
    THU = "Thu"
    FRI = "Fri"
    SAT = "Sat"
    SUN = "Sun"


class Scaffold(Base):
    """Recurring weekly slot (e.g. every Tue 21:00, 2 courts)."""

    __tablename__ = "scaffolds"

    id: Mapped[str] = mapped_column(String(16), primary_key=True)
    day_of_week: Mapped[str] = mapped_column(String(3), nullable=False)  # Mon..Sun
    time: Mapped[str] = mapped_column(String(5), nullable=False)  # HH:MM, 24h
    default_courts: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    announcement_deadline: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)  # e.g. "-1d 12:00"
    owner_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)  # Discord user ID
    deleted_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Events keep their scaffold_id; no cascade
    events = relationship("Event", back_populates="scaffold")
