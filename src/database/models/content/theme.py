"""
Theme: a battle prompt with two opposing sides.
Pure schema.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class Theme(Base, IdMixin, TimestampMixin):
    """
    Schema-only:
    - title, description
    - duality_option_1 / duality_option_2 (labels of the two sides)
    - created_by (FK to profiles)
    - is_active (accepting poems)
    - end_date (optional scheduled close)
    - winning_side (option_1 | option_2, set when closed; null on a tie)
    """

    __tablename__ = "themes"
    __table_args__ = (
        Index("ix_themes_active_created", "is_active", "created_at"),
    )

    title: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    duality_option_1: Mapped[str] = mapped_column(String(60), nullable=False)
    duality_option_2: Mapped[str] = mapped_column(String(60), nullable=False)

    created_by: Mapped[str] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    winning_side: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
