"""
Leaderboard Service
===================

Purpose
-------
Aggregates each profile's contributions (poems written, likes received,
battles won), ranks them with `RankingEngine`, and persists snapshots so
rank movement can be shown between refreshes.

Domain
------
- Live leaderboard queries per period (overall, monthly)
- One user's standing
- Snapshot refresh with rank change tracking
- Recent battle results
- Trend labels for rank movement

Periods
-------
``overall`` counts every poem. ``monthly`` counts poems created within the
trailing ``leaderboards.monthly_window_days`` (default 30). A battle counts
as won in a period when the user wrote a winning poem in that period; one
theme counts once however many winning poems the user wrote for it.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import case, distinct, func, select
from sqlalchemy.exc import IntegrityError

from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.core.validation.input_validator import InputValidator
from src.database.models.content.poem import Poem
from src.database.models.content.theme import Theme
from src.database.models.enums import LeaderboardPeriod
from src.database.models.progression.leaderboard import LeaderboardSnapshot
from src.database.models.social.profile import Profile
from src.domain.models.ranking import ContributionRecord, LeaderboardEntry, RankingEngine
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import NotFoundError

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus


# ============================================================================
# Repository
# ============================================================================


class LeaderboardSnapshotRepository(BaseRepository[LeaderboardSnapshot]):
    async def find_by_period(
        self, session: AsyncSession, period: str, for_update: bool = False
    ) -> List[LeaderboardSnapshot]:
        return await self.find_many_where(
            session,
            LeaderboardSnapshot.period == period,
            order_by=[LeaderboardSnapshot.rank],
            for_update=for_update,
        )


# ============================================================================
# LeaderboardService
# ============================================================================


class LeaderboardService(BaseService):
    """
    Leaderboard rankings and snapshots.

    Public Methods
    --------------
    - collect_contributions() -> Per-profile counters for a period
    - get_leaderboard() -> Ranked page for a period
    - get_user_standing() -> One user's entry for a period
    - refresh_snapshot() -> Persist ranks and rank changes
    - get_recent_battles() -> Latest closed themes and their winners
    - format_trend() -> "up" / "down" / "stable" from a rank change
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)

        self._snapshot_repo = LeaderboardSnapshotRepository(
            model_class=LeaderboardSnapshot,
            logger=get_logger(f"{__name__}.LeaderboardSnapshotRepository"),
        )
        self._engine = RankingEngine()

    # ========================================================================
    # AGGREGATION
    # ========================================================================

    async def collect_contributions(
        self, session: AsyncSession, period: str
    ) -> List[ContributionRecord]:
        """
        Count poems, likes and won battles for every profile.

        Profiles without poems appear with zero counts.
        """
        conditions = []
        since = self._period_start(period)
        if since is not None:
            conditions.append(Poem.created_at >= since)

        poem_stats = (
            select(
                Poem.author_id.label("author_id"),
                func.count(Poem.id).label("poems_written"),
                func.coalesce(func.sum(Poem.likes_count), 0).label("likes_received"),
                func.count(distinct(case((Poem.is_winner.is_(True), Poem.theme_id)))).label(
                    "battles_won"
                ),
            )
            .where(*conditions)
            .group_by(Poem.author_id)
            .subquery()
        )

        stmt = select(
            Profile.id,
            Profile.username,
            func.coalesce(poem_stats.c.poems_written, 0),
            func.coalesce(poem_stats.c.likes_received, 0),
            func.coalesce(poem_stats.c.battles_won, 0),
        ).outerjoin(poem_stats, poem_stats.c.author_id == Profile.id)

        result = await session.execute(stmt)
        records = [
            ContributionRecord(
                user_id=user_id,
                username=username,
                poems_written=int(poems),
                likes_received=int(likes),
                battles_won=int(wins),
            )
            for user_id, username, poems, likes, wins in result.all()
        ]

        self.log.debug(
            "Leaderboard contributions collected",
            extra={"period": period, "profile_count": len(records)},
        )
        return records

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def get_leaderboard(
        self,
        period: str = LeaderboardPeriod.OVERALL.value,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """
        Ranked leaderboard page computed from live data.

        Args:
            period: "overall" or "monthly"
            limit: Page size, at most ``leaderboards.max_page_size``
            offset: Entries to skip

        Returns:
            Dict with ``period``, ``total`` (ranked profiles) and ``entries``

        Raises:
            ValidationError: If period, limit or offset are invalid

        Example:
            >>> page = await service.get_leaderboard("monthly", limit=10)
            >>> page["entries"][0]["rank"]
            1
        """
        period = self._validate_period(period)
        max_page_size = self.get_config("leaderboards.max_page_size", default=100)
        if limit is None:
            limit = self.get_config("leaderboards.default_page_size", default=20)
        limit = InputValidator.validate_positive_integer(limit, "limit", max_value=max_page_size)
        offset = InputValidator.validate_non_negative_integer(offset, "offset")

        self.log_operation("get_leaderboard", period=period, limit=limit, offset=offset)

        async with DatabaseService.get_session() as session:
            records = await self.collect_contributions(session, period)
            changes = await self._recorded_rank_changes(session, period)

        ranked = self._engine.rank(records)
        page = ranked[offset : offset + limit]

        return {
            "period": period,
            "total": len(ranked),
            "limit": limit,
            "offset": offset,
            "entries": [self._entry_dict(entry, changes.get(entry.user_id)) for entry in page],
        }

    async def get_user_standing(
        self, user_id: str, period: str = LeaderboardPeriod.OVERALL.value
    ) -> Dict[str, Any]:
        """
        Raises:
            NotFoundError: If the profile does not exist
        """
        user_id = InputValidator.validate_user_id(user_id)
        period = self._validate_period(period)

        self.log_operation("get_user_standing", user_id=user_id, period=period)

        async with DatabaseService.get_session() as session:
            records = await self.collect_contributions(session, period)
            changes = await self._recorded_rank_changes(session, period)

        for entry in self._engine.rank(records):
            if entry.user_id == user_id:
                return {
                    **self._entry_dict(entry, changes.get(user_id)),
                    "period": period,
                    "total": len(records),
                }

        raise NotFoundError("Profile", user_id)

    async def get_recent_battles(self, limit: int = 10) -> List[Dict[str, Any]]:
        """
        Latest closed themes with a winner.

        Each result names the winning side's label, the most-liked poem's
        author on that side, and how many distinct users took part.
        """
        limit = InputValidator.validate_positive_integer(
            limit, "limit", max_value=self.get_config("leaderboards.max_page_size", default=100)
        )

        async with DatabaseService.get_session() as session:
            theme_stmt = (
                select(Theme)
                .where(Theme.is_active.is_(False), Theme.winning_side.is_not(None))
                .order_by(Theme.updated_at.desc())
                .limit(limit)
            )
            themes = list((await session.execute(theme_stmt)).scalars().all())

            battles: List[Dict[str, Any]] = []
            for theme in themes:
                participants = await session.scalar(
                    select(func.count(distinct(Poem.author_id))).where(Poem.theme_id == theme.id)
                )
                top_stmt = (
                    select(Profile.username, Poem.likes_count)
                    .join(Profile, Profile.id == Poem.author_id)
                    .where(Poem.theme_id == theme.id, Poem.side == theme.winning_side)
                    .order_by(Poem.likes_count.desc(), Poem.created_at.asc())
                    .limit(1)
                )
                top = (await session.execute(top_stmt)).first()

                battles.append(
                    {
                        "theme_id": theme.id,
                        "title": theme.title,
                        "winning_side": theme.winning_side,
                        "winning_label": (
                            theme.duality_option_1
                            if theme.winning_side == "option_1"
                            else theme.duality_option_2
                        ),
                        "top_username": top[0] if top else None,
                        "top_likes": top[1] if top else 0,
                        "participants": participants or 0,
                        "closed_at": theme.updated_at.isoformat() if theme.updated_at else None,
                    }
                )

        return battles

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def refresh_snapshot(self, period: str = LeaderboardPeriod.OVERALL.value) -> Dict[str, Any]:
        """
        Recompute ranks for ``period`` and persist them.

        ``rank_change`` is ``previous_rank - new_rank`` (positive means the
        user moved up); users entering the board for the first time get 0.
        Every row of the period gets the same, bumped ``snapshot_version``.
        Rows for profiles that no longer exist are deleted by cascade.

        Two refreshes of the same period racing on a first insert collide on
        the (user_id, period) unique key. The loser rolls back and reports
        ``skipped`` without emitting an event; the winner's snapshot stands.

        Returns:
            Dict with ``period``, ``total_entries`` and ``snapshot_version``
            (plus ``skipped`` when a concurrent refresh won)
        """
        period = self._validate_period(period)
        self.log_operation("refresh_snapshot", period=period)

        try:
            async with DatabaseService.get_transaction() as session:
                existing = {
                    row.user_id: row
                    for row in await self._snapshot_repo.find_by_period(session, period, for_update=True)
                }
                new_version = max((row.snapshot_version for row in existing.values()), default=0) + 1

                records = await self.collect_contributions(session, period)
                ranked = self._engine.rank(records)

                for entry in ranked:
                    row = existing.get(entry.user_id)
                    if row is None:
                        row = LeaderboardSnapshot(user_id=entry.user_id, period=period, rank_change=0)
                        self._snapshot_repo.add(session, row)
                    else:
                        row.rank_change = row.rank - entry.rank

                    row.username = entry.username or ""
                    row.rank = entry.rank
                    row.score = entry.score
                    row.poems_written = entry.poems_written
                    row.likes_received = entry.likes_received
                    row.battles_won = entry.battles_won
                    row.snapshot_version = new_version

                await self._snapshot_repo.flush(session)
        except IntegrityError:
            self.log.warning(
                f"Leaderboard refresh skipped, concurrent refresh inserted first: {period}",
                extra={"period": period},
            )
            return {
                "period": period,
                "total_entries": 0,
                "snapshot_version": None,
                "skipped": True,
            }

        await self.emit_event(
            "leaderboard.snapshot_refreshed",
            {
                "period": period,
                "total_entries": len(ranked),
                "snapshot_version": new_version,
            },
        )

        self.log.info(
            f"Leaderboard snapshot refreshed: {period}",
            extra={"period": period, "total_entries": len(ranked), "snapshot_version": new_version},
        )

        return {
            "period": period,
            "total_entries": len(ranked),
            "snapshot_version": new_version,
        }

    # ========================================================================
    # PRESENTATION HELPERS
    # ========================================================================

    @staticmethod
    def format_trend(rank_change: Optional[int]) -> str:
        if not rank_change:
            return "stable"
        return "up" if rank_change > 0 else "down"

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    def _validate_period(self, period: str) -> str:
        periods = self.get_config(
            "leaderboards.periods",
            default=[p.value for p in LeaderboardPeriod],
        )
        return InputValidator.validate_choice(period, "period", periods)

    def _period_start(self, period: str) -> Optional[datetime]:
        if period != LeaderboardPeriod.MONTHLY.value:
            return None
        window_days = self.get_config("leaderboards.monthly_window_days", default=30)
        return datetime.now(timezone.utc) - timedelta(days=int(window_days))

    async def _recorded_rank_changes(self, session: AsyncSession, period: str) -> Dict[str, int]:
        """Rank movement recorded by the last refresh, keyed by user id."""
        rows = await self._snapshot_repo.find_by_period(session, period)
        return {row.user_id: row.rank_change for row in rows}

    def _entry_dict(self, entry: LeaderboardEntry, rank_change: Optional[int]) -> Dict[str, Any]:
        return {
            **entry.to_dict(),
            "rank_change": rank_change or 0,
            "trend": self.format_trend(rank_change),
        }
