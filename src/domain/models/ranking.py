"""
Leaderboard scoring and ranking for RhymeRumble.

Purpose
-------
Turn per-user contribution counts into an ordered leaderboard. This module is
pure: no I/O, no clock, no configuration. Services aggregate the counts from
the database and hand them to `RankingEngine.rank`.

Scoring
-------
    score = poems_written * 5 + likes_received * 2 + battles_won * 10

Ordering
--------
- Score descending.
- Equal scores are ordered by ``user_id`` ascending so the same input always
  yields the same leaderboard.
- Ranks are sequential (1, 2, 3, ...) even across ties; tied users do not
  share a rank.

Preconditions
-------------
- ``user_id`` values are unique within one call. Duplicates are not detected.
- Counts are not validated. A negative count lowers the score.

Usage Example
-------------
>>> engine = RankingEngine()
>>> board = engine.rank([
...     ContributionRecord("u1", poems_written=10, likes_received=20, battles_won=1),
...     ContributionRecord("u2", poems_written=5, likes_received=5, battles_won=5),
... ])
>>> [(e.user_id, e.score, e.rank) for e in board]
[('u1', 100, 1), ('u2', 85, 2)]
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

# ============================================================================
# SCORE WEIGHTS
# ============================================================================

POEM_WEIGHT = 5
LIKE_WEIGHT = 2
BATTLE_WIN_WEIGHT = 10


# ============================================================================
# VALUE OBJECTS
# ============================================================================


@dataclass(frozen=True)
class ContributionRecord:
    """
    Aggregated contribution counts for one user.

    Attributes
    ----------
    user_id : str
        Profile identifier
    poems_written : int
        Poems authored in the ranking window
    likes_received : int
        Likes received across those poems
    battles_won : int
        Themes in which the user wrote a poem on the winning side
    username : Optional[str]
        Display name carried through to the entry
    """

    user_id: str
    poems_written: int = 0
    likes_received: int = 0
    battles_won: int = 0
    username: Optional[str] = None


@dataclass(frozen=True)
class LeaderboardEntry:
    """One ranked row of a leaderboard."""

    user_id: str
    score: int
    rank: int
    poems_written: int
    likes_received: int
    battles_won: int
    username: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "score": self.score,
            "rank": self.rank,
            "poems_written": self.poems_written,
            "likes_received": self.likes_received,
            "battles_won": self.battles_won,
        }


# ============================================================================
# RANKING ENGINE
# ============================================================================


def calculate_score(poems_written: int, likes_received: int, battles_won: int) -> int:
    """
    Weighted contribution score.

    Examples
    --------
    >>> calculate_score(10, 20, 1)
    100
    >>> calculate_score(0, 0, 0)
    0
    """
    return (
        poems_written * POEM_WEIGHT
        + likes_received * LIKE_WEIGHT
        + battles_won * BATTLE_WIN_WEIGHT
    )


class RankingEngine:
    """Stateless scorer and sorter for leaderboard snapshots."""

    @staticmethod
    def score(record: ContributionRecord) -> int:
        return calculate_score(
            record.poems_written, record.likes_received, record.battles_won
        )

    def rank(self, records: Iterable[ContributionRecord]) -> List[LeaderboardEntry]:
        """
        Score and order ``records`` into leaderboard entries.

        Returns an empty list for empty input. The result has exactly one
        entry per record, with ranks ``1..N``.
        """
        scored = [(self.score(record), record) for record in records]
        scored.sort(key=lambda pair: (-pair[0], pair[1].user_id))

        return [
            LeaderboardEntry(
                user_id=record.user_id,
                score=score,
                rank=position,
                poems_written=record.poems_written,
                likes_received=record.likes_received,
                battles_won=record.battles_won,
                username=record.username,
            )
            for position, (score, record) in enumerate(scored, start=1)
        ]
