"""
Profile: public user profile.
Pure schema.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class Profile(Base, IdMixin, TimestampMixin):
    """
    A registered user. ``id`` is the identity provider's user id.

    Schema-only:
    - username (unique handle)
    - full_name, avatar_url, bio (optional display fields)
    - points, level (display counters)
    """

    __tablename__ = "profiles"

    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
