"""
LeaderboardSnapshot: persisted leaderboard position per user and period.
Schema only.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class LeaderboardSnapshot(Base, IdMixin, TimestampMixin):
    """
    Last computed leaderboard position for a user in one period.
    """

    __tablename__ = "leaderboard_snapshots"
    __table_args__ = (
        UniqueConstraint("user_id", "period", name="uq_leaderboard_user_period"),
        Index("ix_leaderboard_period_rank", "period", "rank"),
    )

    user_id: Mapped[str] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    username: Mapped[str] = mapped_column(String(50), nullable=False, default="")

    period: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    rank_change: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    poems_written: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    likes_received: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    battles_won: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    snapshot_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
