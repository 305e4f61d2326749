"""Runtime settings (court price, timezone, deadlines, channel/admin IDs)."""
from __future__ import annotations

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from squash.models.base import Base


class Setting(Base):
    """Key/value setting. Missing keys fall back to environment config."""

    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
