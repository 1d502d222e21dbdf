"""
Poem Service
============

Purpose
-------
Themes (battle prompts with two sides), the poems submitted to them, likes,
and closing a battle. Closing a theme decides the winning side and flags
that side's poems as winners, which is what the leaderboard counts as a
battle won.

Domain
------
- Create themes and list the active ones
- Submit poems to an active theme, list poems with the viewer's likes
- Like / unlike a poem, keeping ``likes_count`` in step with ``poem_likes``
- Close a theme and pick the winning side

Winning Side
------------
The side whose poems hold more likes in total wins. Equal totals (including
a theme nobody liked) close with no winner. Neutral poems never win.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import distinct, func, select, update

from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.core.validation.input_validator import InputValidator
from src.database.models.content.poem import Poem
from src.database.models.content.poem_like import PoemLike
from src.database.models.content.theme import Theme
from src.database.models.enums import PoemSide
from src.database.models.social.profile import Profile
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import (
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus


# ============================================================================
# Repositories
# ============================================================================


class ThemeRepository(BaseRepository[Theme]):
    async def find_active(self, session: AsyncSession) -> List[Theme]:
        return await self.find_many_where(
            session,
            Theme.is_active.is_(True),
            order_by=[Theme.created_at.desc()],
        )


class PoemRepository(BaseRepository[Poem]):
    async def likes_by_side(self, session: AsyncSession, theme_id: str) -> Dict[str, int]:
        stmt = (
            select(Poem.side, func.coalesce(func.sum(Poem.likes_count), 0))
            .where(Poem.theme_id == theme_id)
            .group_by(Poem.side)
        )
        result = await session.execute(stmt)
        return {side: int(total) for side, total in result.all()}


class PoemLikeRepository(BaseRepository[PoemLike]):
    async def find_for_user(
        self, session: AsyncSession, poem_id: str, user_id: str
    ) -> Optional[PoemLike]:
        return await self.find_one_where(
            session,
            PoemLike.poem_id == poem_id,
            PoemLike.user_id == user_id,
        )


# ============================================================================
# PoemService
# ============================================================================


class PoemService(BaseService):
    """
    Themes, poems and likes.

    Public Methods
    --------------
    - create_theme() -> Open a new battle
    - list_active_themes() -> Open battles with poem and participant counts
    - create_poem() -> Submit a poem to an open battle
    - list_poems() -> Poems, newest first, flagged with the viewer's likes
    - toggle_like() -> Like or unlike a poem
    - close_theme() -> End a battle and pick the winning side
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)

        self._theme_repo = ThemeRepository(
            model_class=Theme,
            logger=get_logger(f"{__name__}.ThemeRepository"),
        )
        self._poem_repo = PoemRepository(
            model_class=Poem,
            logger=get_logger(f"{__name__}.PoemRepository"),
        )
        self._like_repo = PoemLikeRepository(
            model_class=PoemLike,
            logger=get_logger(f"{__name__}.PoemLikeRepository"),
        )

    # ========================================================================
    # THEMES
    # ========================================================================

    async def create_theme(
        self,
        creator_id: str,
        title: str,
        description: Optional[str],
        option_1: str,
        option_2: str,
        end_date: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Open a new theme.

        Raises:
            ValidationError: If a field is empty or too long, the two
                options are the same, or ``end_date`` is in the past
            NotFoundError: If the creator has no profile
        """
        creator_id = InputValidator.validate_user_id(creator_id, "creator_id")
        title = InputValidator.validate_string(
            title, "title", min_length=1,
            max_length=self.get_config("themes.max_title_length", default=120),
        )
        description = InputValidator.validate_optional_string(
            description, "description",
            max_length=self.get_config("themes.max_description_length", default=1000),
        )
        max_option = self.get_config("themes.max_option_length", default=60)
        option_1 = InputValidator.validate_string(option_1, "option_1", min_length=1, max_length=max_option)
        option_2 = InputValidator.validate_string(option_2, "option_2", min_length=1, max_length=max_option)
        if option_1.lower() == option_2.lower():
            raise ValidationError("option_2", "The two sides must differ")
        if end_date is not None:
            if end_date.tzinfo is None:
                end_date = end_date.replace(tzinfo=timezone.utc)
            if end_date <= datetime.now(timezone.utc):
                raise ValidationError("end_date", "End date must be in the future")

        self.log_operation("create_theme", creator_id=creator_id, title=title)

        async with DatabaseService.get_transaction() as session:
            if await session.get(Profile, creator_id) is None:
                raise NotFoundError("Profile", creator_id)

            theme = Theme(
                title=title,
                description=description,
                duality_option_1=option_1,
                duality_option_2=option_2,
                created_by=creator_id,
                is_active=True,
                end_date=end_date,
            )
            self._theme_repo.add(session, theme)
            await self._theme_repo.flush(session)
            payload = self._theme_dict(theme)

        await self.emit_event(
            "theme.created",
            {"theme_id": payload["id"], "created_by": creator_id, "title": title},
        )
        return payload

    async def list_active_themes(self) -> List[Dict[str, Any]]:
        """
        Active themes, newest first, with ``total_poems``, ``participants``
        and the creator's username.
        """
        async with DatabaseService.get_session() as session:
            themes = await self._theme_repo.find_active(session)
            if not themes:
                return []

            theme_ids = [theme.id for theme in themes]
            count_stmt = (
                select(
                    Poem.theme_id,
                    func.count(Poem.id),
                    func.count(distinct(Poem.author_id)),
                )
                .where(Poem.theme_id.in_(theme_ids))
                .group_by(Poem.theme_id)
            )
            counts = {
                theme_id: (int(poems), int(authors))
                for theme_id, poems, authors in (await session.execute(count_stmt)).all()
            }

            creator_stmt = select(Profile.id, Profile.username).where(
                Profile.id.in_({theme.created_by for theme in themes})
            )
            creators = dict((await session.execute(creator_stmt)).all())

        return [
            {
                **self._theme_dict(theme),
                "creator_username": creators.get(theme.created_by),
                "total_poems": counts.get(theme.id, (0, 0))[0],
                "participants": counts.get(theme.id, (0, 0))[1],
            }
            for theme in themes
        ]

    async def close_theme(self, theme_id: str, closer_id: str) -> Dict[str, Any]:
        """
        End a battle. Only the creator may close it.

        Returns:
            Dict with the theme, ``likes_by_side`` and ``winning_poem_ids``

        Raises:
            NotFoundError: If the theme does not exist
            InvalidOperationError: If the closer is not the creator, or the
                theme is already closed
        """
        closer_id = InputValidator.validate_user_id(closer_id, "closer_id")
        theme_id = InputValidator.validate_string(theme_id, "theme_id", min_length=1, max_length=36)

        self.log_operation("close_theme", theme_id=theme_id, closer_id=closer_id)

        async with DatabaseService.get_transaction() as session:
            theme = await self._theme_repo.get(session, theme_id, for_update=True)
            if theme is None:
                raise NotFoundError("Theme", theme_id)
            if theme.created_by != closer_id:
                raise InvalidOperationError("close_theme", "only the theme's creator can close it")
            if not theme.is_active:
                raise InvalidOperationError("close_theme", "theme is already closed")

            totals = await self._poem_repo.likes_by_side(session, theme_id)
            winning_side = self._decide_winner(totals)

            theme.is_active = False
            theme.winning_side = winning_side

            winning_poem_ids: List[str] = []
            if winning_side is not None:
                result = await session.execute(
                    update(Poem)
                    .where(Poem.theme_id == theme_id, Poem.side == winning_side)
                    .values(is_winner=True)
                    .returning(Poem.id)
                )
                winning_poem_ids = [row[0] for row in result.all()]

            payload = self._theme_dict(theme)

        await self.emit_event(
            "theme.closed",
            {
                "theme_id": theme_id,
                "closed_by": closer_id,
                "winning_side": winning_side,
                "winning_poem_ids": winning_poem_ids,
            },
        )

        self.log.info(
            "Theme closed",
            extra={"theme_id": theme_id, "winning_side": winning_side, "winners": len(winning_poem_ids)},
        )
        return {
            **payload,
            "likes_by_side": {
                PoemSide.OPTION_1.value: totals.get(PoemSide.OPTION_1.value, 0),
                PoemSide.OPTION_2.value: totals.get(PoemSide.OPTION_2.value, 0),
            },
            "winning_poem_ids": winning_poem_ids,
        }

    # ========================================================================
    # POEMS
    # ========================================================================

    async def create_poem(
        self,
        author_id: str,
        theme_id: str,
        title: str,
        content: str,
        side: str = PoemSide.NEUTRAL.value,
    ) -> Dict[str, Any]:
        """
        Submit a poem.

        Raises:
            ValidationError: If title/content are empty or too long, or the
                side is unknown
            NotFoundError: If the theme or the author's profile is missing
            InvalidOperationError: If the theme is closed or past its end date
        """
        author_id = InputValidator.validate_user_id(author_id, "author_id")
        theme_id = InputValidator.validate_string(theme_id, "theme_id", min_length=1, max_length=36)
        title = InputValidator.validate_string(
            title, "title", min_length=1,
            max_length=self.get_config("poems.max_title_length", default=120),
        )
        content = InputValidator.validate_string(
            content, "content", min_length=1,
            max_length=self.get_config("poems.max_content_length", default=2000),
        )
        side = InputValidator.validate_choice(side, "side", [s.value for s in PoemSide])

        self.log_operation("create_poem", author_id=author_id, theme_id=theme_id, side=side)

        async with DatabaseService.get_transaction() as session:
            theme = await self._theme_repo.get(session, theme_id)
            if theme is None:
                raise NotFoundError("Theme", theme_id)
            if not theme.is_active:
                raise InvalidOperationError("create_poem", "theme is closed")
            if self._has_ended(theme):
                raise InvalidOperationError("create_poem", "theme has ended")
            if await session.get(Profile, author_id) is None:
                raise NotFoundError("Profile", author_id)

            poem = Poem(
                theme_id=theme_id,
                author_id=author_id,
                title=title,
                content=content,
                side=side,
                likes_count=0,
                is_winner=False,
            )
            self._poem_repo.add(session, poem)
            await self._poem_repo.flush(session)
            payload = self._poem_dict(poem)

        await self.emit_event(
            "poem.created",
            {"poem_id": payload["id"], "theme_id": theme_id, "author_id": author_id, "side": side},
        )
        return payload

    async def list_poems(
        self,
        theme_id: Optional[str] = None,
        viewer_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Poems (optionally of one theme), newest first, with ``is_liked`` for the viewer."""
        conditions = []
        if theme_id is not None:
            conditions.append(Poem.theme_id == theme_id)
        if viewer_id is not None:
            viewer_id = InputValidator.validate_user_id(viewer_id, "viewer_id")

        async with DatabaseService.get_session() as session:
            stmt = (
                select(Poem, Profile.username, Profile.avatar_url)
                .join(Profile, Profile.id == Poem.author_id)
                .where(*conditions)
                .order_by(Poem.created_at.desc())
            )
            rows = (await session.execute(stmt)).all()

            liked: set[str] = set()
            if viewer_id is not None and rows:
                like_stmt = select(PoemLike.poem_id).where(
                    PoemLike.user_id == viewer_id,
                    PoemLike.poem_id.in_([poem.id for poem, _, _ in rows]),
                )
                liked = set((await session.execute(like_stmt)).scalars().all())

        return [
            {
                **self._poem_dict(poem),
                "author": {"username": username, "avatar_url": avatar_url},
                "is_liked": poem.id in liked,
            }
            for poem, username, avatar_url in rows
        ]

    async def toggle_like(self, poem_id: str, user_id: str) -> Dict[str, Any]:
        """
        Like the poem, or remove the like if it is already there.

        Returns:
            Dict with ``poem_id``, ``liked`` (state after the call) and
            ``likes_count``

        Raises:
            NotFoundError: If the poem does not exist, or a new
                liker has no profile
            InvalidOperationError: If authors may not like their own poems
        """
        user_id = InputValidator.validate_user_id(user_id)
        poem_id = InputValidator.validate_string(poem_id, "poem_id", min_length=1, max_length=36)

        self.log_operation("toggle_like", poem_id=poem_id, user_id=user_id)

        async with DatabaseService.get_transaction() as session:
            poem = await self._poem_repo.get(session, poem_id, for_update=True)
            if poem is None:
                raise NotFoundError("Poem", poem_id)
            if poem.author_id == user_id and not self.get_config("poems.allow_self_like", default=False):
                raise InvalidOperationError("like", "you cannot like your own poem")

            existing = await self._like_repo.find_for_user(session, poem_id, user_id)
            if existing is not None:
                await self._like_repo.delete(session, existing)
                poem.likes_count = max(0, poem.likes_count - 1)
                liked = False
            else:
                if await session.get(Profile, user_id) is None:
                    raise NotFoundError("Profile", user_id)
                self._like_repo.add(session, PoemLike(poem_id=poem_id, user_id=user_id))
                poem.likes_count += 1
                liked = True

            likes_count = poem.likes_count
            author_id = poem.author_id

        await self.emit_event(
            "poem.liked" if liked else "poem.unliked",
            {
                "poem_id": poem_id,
                "user_id": user_id,
                "author_id": author_id,
                "likes_count": likes_count,
            },
        )
        return {"poem_id": poem_id, "liked": liked, "likes_count": likes_count}

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    @staticmethod
    def _has_ended(theme: Theme) -> bool:
        if theme.end_date is None:
            return False
        end_date = theme.end_date
        if end_date.tzinfo is None:
            end_date = end_date.replace(tzinfo=timezone.utc)
        return end_date <= datetime.now(timezone.utc)

    @staticmethod
    def _decide_winner(likes_by_side: Dict[str, int]) -> Optional[str]:
        first = likes_by_side.get(PoemSide.OPTION_1.value, 0)
        second = likes_by_side.get(PoemSide.OPTION_2.value, 0)
        if first == second:
            return None
        return PoemSide.OPTION_1.value if first > second else PoemSide.OPTION_2.value

    @staticmethod
    def _theme_dict(theme: Theme) -> Dict[str, Any]:
        return {
            "id": theme.id,
            "title": theme.title,
            "description": theme.description,
            "duality_option_1": theme.duality_option_1,
            "duality_option_2": theme.duality_option_2,
            "created_by": theme.created_by,
            "is_active": theme.is_active,
            "end_date": theme.end_date.isoformat() if theme.end_date else None,
            "winning_side": theme.winning_side,
        }

    @staticmethod
    def _poem_dict(poem: Poem) -> Dict[str, Any]:
        return {
            "id": poem.id,
            "theme_id": poem.theme_id,
            "author_id": poem.author_id,
            "title": poem.title,
            "content": poem.content,
            "side": poem.side,
            "likes_count": poem.likes_count,
            "is_winner": poem.is_winner,
            "created_at": poem.created_at.isoformat() if poem.created_at else None,
        }
