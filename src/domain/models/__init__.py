"""
Domain models package for RhymeRumble.

Domain models are separate from database models:
- Database models (src/database/models/): plain SQLAlchemy schemas
- Domain models (src/domain/models/): objects carrying the product rules

Services convert between the two as needed.
"""

from .base import (
    AggregateRoot,
    DomainEvent,
    DomainValidationError,
    Entity,
    validate_not_empty,
)
from .friendship import (
    DeclinePolicy,
    Friendship,
    FriendshipStateMachine,
    FriendshipStatus,
    FriendshipView,
    RespondAction,
    pair_key,
)
from .ranking import (
    BATTLE_WIN_WEIGHT,
    LIKE_WEIGHT,
    POEM_WEIGHT,
    ContributionRecord,
    LeaderboardEntry,
    RankingEngine,
    calculate_score,
)
from .session import SessionState, SessionStateMachine, SessionStatus

__all__ = [
    # Base classes
    "Entity",
    "AggregateRoot",
    "DomainEvent",
    "DomainValidationError",
    "validate_not_empty",
    # Ranking
    "ContributionRecord",
    "LeaderboardEntry",
    "RankingEngine",
    "calculate_score",
    "POEM_WEIGHT",
    "LIKE_WEIGHT",
    "BATTLE_WIN_WEIGHT",
    # Friendship
    "Friendship",
    "FriendshipStatus",
    "FriendshipStateMachine",
    "FriendshipView",
    "RespondAction",
    "DeclinePolicy",
    "pair_key",
    # Session
    "SessionState",
    "SessionStateMachine",
    "SessionStatus",
]
