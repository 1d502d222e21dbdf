"""
Leaderboard Module
==================

Domain: Contribution rankings and snapshots

Services:
- LeaderboardService: Live rankings, snapshots and recent battle results
"""

from .service import LeaderboardService, LeaderboardSnapshotRepository

__all__ = [
    "LeaderboardService",
    "LeaderboardSnapshotRepository",
]
