"""
Profile Service
===============

Purpose
-------
Application service for public user profiles: the handle a player signs up
with and the optional display fields they edit afterwards.

Domain
------
- Create a profile for a freshly registered user id
- Look a profile up by id
- Edit username, full name, bio and avatar URL

Concurrency
-----------
Usernames are checked before writing, but two sign-ups can still pick the
same handle at once. The unique index on ``profiles.username`` rejects the
loser at flush time and that surfaces as a `ValidationError` on
``username``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence

from sqlalchemy.exc import IntegrityError

from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.core.validation.input_validator import InputValidator
from src.database.models.social.profile import Profile
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import InvalidOperationError, NotFoundError, ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus


USERNAME_CHARS = "a-zA-Z0-9_"
USERNAME_TAKEN = "Username is already taken"


# ============================================================================
# Repository
# ============================================================================


class ProfileRepository(BaseRepository[Profile]):
    async def find_by_ids(
        self, session: AsyncSession, user_ids: Sequence[str]
    ) -> Dict[str, Profile]:
        profiles = await self.get_many(session, list(dict.fromkeys(user_ids)))
        return {profile.id: profile for profile in profiles}

    async def find_by_username(self, session: AsyncSession, username: str) -> Optional[Profile]:
        return await self.find_one_where(session, Profile.username == username)


# ============================================================================
# ProfileService
# ============================================================================


class ProfileService(BaseService):
    """
    Profile sign-up and editing.

    Public Methods
    --------------
    - create_profile() -> Register a handle for a new user id
    - get_profile() -> Load one profile
    - update_profile() -> Edit username and display fields
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)

        self._profile_repo = ProfileRepository(
            model_class=Profile,
            logger=get_logger(f"{__name__}.ProfileRepository"),
        )

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def create_profile(self, user_id: str, username: str) -> Dict[str, Any]:
        """
        Create the profile row for a newly registered user.

        Args:
            user_id: Identity provider's id for the user
            username: Requested public handle

        Returns:
            The new profile as a dict

        Raises:
            ValidationError: If the username is malformed or already taken
            InvalidOperationError: If ``user_id`` already has a profile
        """
        user_id = InputValidator.validate_user_id(user_id, "user_id")
        username = self._validate_username(username)

        self.log_operation("create_profile", user_id=user_id, username=username)

        async with DatabaseService.get_transaction() as session:
            if await self._profile_repo.get(session, user_id) is not None:
                raise InvalidOperationError("create_profile", "profile already exists")
            if await self._profile_repo.find_by_username(session, username) is not None:
                raise ValidationError("username", USERNAME_TAKEN)

            profile = Profile(id=user_id, username=username, points=0, level=1)
            self._profile_repo.add(session, profile)
            await self._flush_username(session, username)

        await self.emit_event("profile.created", {"user_id": user_id, "username": username})

        self.log.info("Profile created", extra={"user_id": user_id, "username": username})
        return self._to_dict(profile)

    async def update_profile(
        self,
        user_id: str,
        full_name: Optional[str] = None,
        bio: Optional[str] = None,
        avatar_url: Optional[str] = None,
        username: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Edit a profile.

        Arguments left as ``None`` are unchanged. A blank ``full_name``,
        ``bio`` or ``avatar_url`` clears that field; ``username`` can be
        changed but never cleared.

        Raises:
            NotFoundError: If the profile does not exist
            ValidationError: If a value is malformed or the new username is
                taken by someone else
        """
        user_id = InputValidator.validate_user_id(user_id, "user_id")

        changes: Dict[str, Any] = {}
        if username is not None:
            changes["username"] = self._validate_username(username)
        if full_name is not None:
            changes["full_name"] = InputValidator.validate_optional_string(
                full_name,
                "full_name",
                max_length=self.get_config("profiles.max_full_name_length", default=100),
            )
        if bio is not None:
            changes["bio"] = InputValidator.validate_optional_string(
                bio, "bio", max_length=self.get_config("profiles.max_bio_length", default=500)
            )
        if avatar_url is not None:
            changes["avatar_url"] = self._validate_avatar_url(avatar_url)

        self.log_operation("update_profile", user_id=user_id, fields=sorted(changes))

        async with DatabaseService.get_transaction() as session:
            profile = await self._profile_repo.get(session, user_id, for_update=True)
            if profile is None:
                raise NotFoundError("Profile", user_id)

            new_username = changes.get("username")
            if new_username is not None and new_username != profile.username:
                holder = await self._profile_repo.find_by_username(session, new_username)
                if holder is not None and holder.id != user_id:
                    raise ValidationError("username", USERNAME_TAKEN)

            changed = [field for field, value in changes.items() if getattr(profile, field) != value]
            for field in changed:
                setattr(profile, field, changes[field])

            if changed:
                await self._flush_username(session, profile.username)

        if changed:
            await self.emit_event("profile.updated", {"user_id": user_id, "fields": sorted(changed)})

        return self._to_dict(profile)

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def get_profile(self, user_id: str) -> Dict[str, Any]:
        user_id = InputValidator.validate_user_id(user_id, "user_id")

        async with DatabaseService.get_session() as session:
            profile = await self._profile_repo.get(session, user_id)

        if profile is None:
            raise NotFoundError("Profile", user_id)
        return self._to_dict(profile)

    # ========================================================================
    # HELPERS
    # ========================================================================

    async def _flush_username(self, session: AsyncSession, username: str) -> None:
        try:
            await self._profile_repo.flush(session)
        except IntegrityError as exc:
            # Another sign-up or rename claimed the handle first.
            self.log.warning("Username claimed concurrently", extra={"username": username})
            raise ValidationError("username", USERNAME_TAKEN) from exc

    def _validate_username(self, username: Any) -> str:
        return InputValidator.validate_string(
            username,
            "username",
            min_length=self.get_config("profiles.username_min_length", default=3),
            max_length=self.get_config("profiles.username_max_length", default=30),
            allowed_chars=USERNAME_CHARS,
        )

    def _validate_avatar_url(self, avatar_url: Any) -> Optional[str]:
        url = InputValidator.validate_optional_string(avatar_url, "avatar_url", max_length=500)
        if url is not None and not url.startswith(("https://", "http://")):
            raise ValidationError("avatar_url", "Must be an http(s) URL")
        return url

    @staticmethod
    def _to_dict(profile: Profile) -> Dict[str, Any]:
        return {
            "id": profile.id,
            "username": profile.username,
            "full_name": profile.full_name,
            "avatar_url": profile.avatar_url,
            "bio": profile.bio,
            "points": profile.points,
            "level": profile.level,
            "created_at": profile.created_at.isoformat() if profile.created_at else None,
        }
