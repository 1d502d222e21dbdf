from .leaderboard import LeaderboardSnapshot

__all__ = ["LeaderboardSnapshot"]
