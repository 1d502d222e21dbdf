"""
Friendship: one edge per unordered pair of profiles.
Pure schema.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class Friendship(Base, IdMixin, TimestampMixin):
    """
    Friend request / friendship / block between two profiles.

    Schema-only:
    - pair_key ("<smaller id>:<larger id>", unique; enforces one edge per pair)
    - user_id (side that sent the current request)
    - friend_id (side that received it)
    - status (pending | accepted | blocked | declined)
    - requested_by, blocked_by
    - responded_at
    """

    __tablename__ = "friendships"
    __table_args__ = (
        Index("ix_friendships_user_status", "user_id", "status"),
        Index("ix_friendships_friend_status", "friend_id", "status"),
    )

    pair_key: Mapped[str] = mapped_column(String(80), nullable=False, unique=True)

    user_id: Mapped[str] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    friend_id: Mapped[str] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")

    requested_by: Mapped[str] = mapped_column(String(36), nullable=False)
    blocked_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    responded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
