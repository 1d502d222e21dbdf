"""
PoemLike: one user's like on one poem.
Pure schema.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class PoemLike(Base, IdMixin, TimestampMixin):
    __tablename__ = "poem_likes"
    __table_args__ = (
        UniqueConstraint("poem_id", "user_id", name="uq_poem_likes_poem_user"),
    )

    poem_id: Mapped[str] = mapped_column(
        ForeignKey("poems.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
