"""
Database Model Enums
====================

Type-safe constants for categorical columns. Stored as their string values.
"""

from __future__ import annotations

import enum


class PoemSide(str, enum.Enum):
    """Which side of a theme's duality a poem argues for."""

    OPTION_1 = "option_1"
    OPTION_2 = "option_2"
    NEUTRAL = "neutral"


class LeaderboardPeriod(str, enum.Enum):
    """
    Time window a leaderboard is computed over.

    OVERALL counts everything; MONTHLY only counts poems from the trailing
    window configured by ``leaderboards.monthly_window_days``.
    """

    OVERALL = "overall"
    MONTHLY = "monthly"
