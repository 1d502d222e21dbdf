"""
Poem: a submission to a theme.
Pure schema.
"""

from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class Poem(Base, IdMixin, TimestampMixin):
    """
    Schema-only:
    - theme_id (FK to themes)
    - author_id (FK to profiles)
    - title, content
    - side (option_1 | option_2 | neutral)
    - likes_count (denormalized count of poem_likes rows)
    - is_winner (set when the theme closes in favor of this poem's side)
    """

    __tablename__ = "poems"
    __table_args__ = (
        Index("ix_poems_theme_side", "theme_id", "side"),
        Index("ix_poems_author_created", "author_id", "created_at"),
    )

    theme_id: Mapped[str] = mapped_column(
        ForeignKey("themes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    author_id: Mapped[str] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(120), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    side: Mapped[str] = mapped_column(String(16), nullable=False, default="neutral")

    likes_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_winner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
