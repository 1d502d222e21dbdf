"""
Database Models Package
========================

SQLAlchemy ORM models for RhymeRumble, organized by area.

All models:
- Are schema-only, no business logic
- Use Mapped[] syntax with mapped_column()
- Inherit IdMixin (UUID string key) and TimestampMixin
- Declare foreign keys with CASCADE deletes

Areas:
------
- social: Profiles and friendships
- content: Themes, poems and likes
- progression: Leaderboard snapshots
- enums: Shared type-safe enumerations
"""

from src.core.database.base import Base

from .content import Poem, PoemLike, Theme
from .enums import LeaderboardPeriod, PoemSide
from .progression import LeaderboardSnapshot
from .social import Friendship, Profile

__all__ = [
    "Base",
    "Profile",
    "Friendship",
    "Theme",
    "Poem",
    "PoemLike",
    "LeaderboardSnapshot",
    "LeaderboardPeriod",
    "PoemSide",
]
