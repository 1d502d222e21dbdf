"""
Friendship Service
==================

Purpose
-------
Application service for friend requests between profiles. Loads the pair's
edge under a row lock, runs it through `FriendshipStateMachine`, writes it
back and publishes the resulting domain events once the transaction has
committed.

Domain
------
- Send, accept and decline friend requests
- Block another user, remove any edge
- List a user's friends, sent and received requests
- Report the status between two users

Concurrency
-----------
Reads that decide a write take ``SELECT ... FOR UPDATE`` on the pair row.
Two first-time requests for the same pair race on the insert; the unique
``pair_key`` constraint rejects the loser, which surfaces as
`DuplicateRequestError`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.core.validation.input_validator import InputValidator
from src.database.models.social.friendship import Friendship as FriendshipRow
from src.database.models.social.profile import Profile
from src.domain.models.friendship import (
    DeclinePolicy,
    Friendship,
    FriendshipStateMachine,
    FriendshipStatus,
    RespondAction,
    pair_key,
)
from src.modules.profiles.service import ProfileRepository
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import (
    DuplicateRequestError,
    InvalidSelfRequestError,
    NotFoundError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus


# ============================================================================
# Repositories
# ============================================================================


class FriendshipRepository(BaseRepository[FriendshipRow]):
    async def find_by_pair(
        self,
        session: AsyncSession,
        user_a: str,
        user_b: str,
        for_update: bool = False,
    ) -> Optional[FriendshipRow]:
        return await self.find_one_where(
            session,
            FriendshipRow.pair_key == pair_key(user_a, user_b),
            for_update=for_update,
        )

    async def find_for_user(
        self,
        session: AsyncSession,
        user_id: str,
        statuses: Optional[Sequence[FriendshipStatus]] = None,
    ) -> List[FriendshipRow]:
        conditions = [or_(FriendshipRow.user_id == user_id, FriendshipRow.friend_id == user_id)]
        if statuses:
            conditions.append(FriendshipRow.status.in_([s.value for s in statuses]))
        return await self.find_many_where(
            session,
            *conditions,
            order_by=[FriendshipRow.created_at.desc()],
        )


# ============================================================================
# FriendshipService
# ============================================================================


class FriendshipService(BaseService):
    """
    Friend requests, blocks and friend lists.

    Public Methods
    --------------
    - send_request() -> Ask another user to be friends
    - respond() -> Accept or decline a pending request
    - block() -> Block another user
    - remove() -> Delete the edge between two users
    - get_overview() -> Friends, sent and received requests for a user
    - get_status() -> Status of the edge between two users
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
        self._friendship_repo = FriendshipRepository(
            model_class=FriendshipRow,
            logger=get_logger(f"{__name__}.FriendshipRepository"),
        )

    def _state_machine(self) -> FriendshipStateMachine:
        # Read per call so a runtime config change applies to the next request.
        policy = self.get_config("friendships.decline_policy", default=DeclinePolicy.BLOCK.value)
        return FriendshipStateMachine(decline_policy=policy)

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def send_request(self, requester_id: str, target_id: str) -> Dict[str, Any]:
        """
        Send a friend request.

        Args:
            requester_id: Profile sending the request
            target_id: Profile receiving it

        Returns:
            The pending friendship as a dict

        Raises:
            ValidationError: If an id is malformed
            InvalidSelfRequestError: If both ids are the same
            NotFoundError: If either profile does not exist
            DuplicateRequestError: If a request is already pending
            AlreadyFriendsError: If the users are already friends
            RequestBlockedError: If the pair is blocked
        """
        requester_id = InputValidator.validate_user_id(requester_id, "requester_id")
        target_id = InputValidator.validate_user_id(target_id, "target_id")
        if requester_id == target_id:
            raise InvalidSelfRequestError(requester_id)

        self.log_operation("send_request", requester_id=requester_id, target_id=target_id)

        async with DatabaseService.get_transaction() as session:
            await self._require_profiles(session, requester_id, target_id)

            row = await self._friendship_repo.find_by_pair(
                session, requester_id, target_id, for_update=True
            )
            existing = Friendship.from_record(row) if row else None

            edge = self._state_machine().send_request(requester_id, target_id, existing)

            if row is None:
                row = FriendshipRow(id=edge.id)
                edge.apply_to(row)
                self._friendship_repo.add(session, row)
                try:
                    await self._friendship_repo.flush(session)
                except IntegrityError as exc:
                    # A concurrent request for the same pair committed first.
                    raise DuplicateRequestError(requester_id, target_id) from exc
            else:
                edge.apply_to(row)

            events = edge.clear_domain_events()

        await self.publish_domain_events(events)

        self.log.info(
            "Friend request sent",
            extra={"friendship_id": edge.id, "requester_id": requester_id, "target_id": target_id},
        )
        return edge.to_dict()

    async def respond(
        self,
        friendship_id: str,
        responder_id: str,
        action: str,
    ) -> Dict[str, Any]:
        """
        Accept or decline a pending request addressed to ``responder_id``.

        Raises:
            ValidationError: If ``action`` is not accept/decline
            NotFoundError: If the friendship does not exist
            InvalidTransitionError: If it is not pending or the responder
                is not the recipient
        """
        responder_id = InputValidator.validate_user_id(responder_id, "responder_id")
        friendship_id = InputValidator.validate_string(
            friendship_id, "friendship_id", min_length=1, max_length=36
        )
        parsed_action = RespondAction.parse(action)

        self.log_operation(
            "respond",
            friendship_id=friendship_id,
            responder_id=responder_id,
            action=parsed_action.value,
        )

        async with DatabaseService.get_transaction() as session:
            row = await self._friendship_repo.get(session, friendship_id, for_update=True)
            if row is None:
                raise NotFoundError("Friendship", friendship_id)

            edge = Friendship.from_record(row)
            self._state_machine().respond(edge, parsed_action, responder_id=responder_id)
            edge.apply_to(row)
            events = edge.clear_domain_events()

        await self.publish_domain_events(events)
        return edge.to_dict()

    async def block(self, blocker_id: str, other_id: str) -> Dict[str, Any]:
        blocker_id = InputValidator.validate_user_id(blocker_id, "blocker_id")
        other_id = InputValidator.validate_user_id(other_id, "other_id")
        if blocker_id == other_id:
            raise InvalidSelfRequestError(blocker_id)

        self.log_operation("block", blocker_id=blocker_id, other_id=other_id)

        async with DatabaseService.get_transaction() as session:
            await self._require_profiles(session, blocker_id, other_id)

            row = await self._friendship_repo.find_by_pair(
                session, blocker_id, other_id, for_update=True
            )
            existing = Friendship.from_record(row) if row else None
            edge = self._state_machine().block(blocker_id, other_id, existing)

            if row is None:
                row = FriendshipRow(id=edge.id)
                edge.apply_to(row)
                self._friendship_repo.add(session, row)
                await self._friendship_repo.flush(session)
            else:
                edge.apply_to(row)

            events = edge.clear_domain_events()

        await self.publish_domain_events(events)
        return edge.to_dict()

    async def remove(self, user_id: str, other_id: str) -> Dict[str, Any]:
        """
        Delete the edge between two users, whatever its status.

        Unfriending, cancelling a sent request and lifting a block all go
        through here.

        Raises:
            ValidationError: If both ids are the same user
            NoSuchEdgeError: If the users have no edge
        """
        user_id = InputValidator.validate_user_id(user_id, "user_id")
        other_id = InputValidator.validate_user_id(other_id, "other_id")
        InputValidator.validate_distinct_ids(user_id, other_id)

        self.log_operation("remove", user_id=user_id, other_id=other_id)

        async with DatabaseService.get_transaction() as session:
            row = await self._friendship_repo.find_by_pair(
                session, user_id, other_id, for_update=True
            )
            existing = Friendship.from_record(row) if row else None

            edge = self._state_machine().remove(user_id, other_id, existing)
            await self._friendship_repo.delete(session, row)
            events = edge.clear_domain_events()

        await self.publish_domain_events(events)
        return {
            "friendship_id": edge.id,
            "removed_by": user_id,
            "previous_status": edge.status.value,
        }

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def get_overview(self, user_id: str) -> Dict[str, Any]:
        """
        Friends, sent and received requests for one user.

        Friends are resolved to profile summaries; requests carry the other
        party's summary under ``"user"``.
        """
        user_id = InputValidator.validate_user_id(user_id)

        async with DatabaseService.get_session() as session:
            rows = await self._friendship_repo.find_for_user(
                session,
                user_id,
                statuses=[FriendshipStatus.ACCEPTED, FriendshipStatus.PENDING],
            )
            view = FriendshipStateMachine.partition(
                user_id, [Friendship.from_record(row) for row in rows]
            )

            other_ids = list(view.friends)
            other_ids.extend(edge.friend_id for edge in view.sent)
            other_ids.extend(edge.requested_by for edge in view.received)
            profiles = await self._profile_repo.find_by_ids(session, other_ids)

        max_friends = self.get_config("friendships.max_overview_friends", default=500)

        def _summary(profile_id: str) -> Dict[str, Any]:
            profile = profiles.get(profile_id)
            if profile is None:
                return {"id": profile_id, "username": None, "full_name": None, "avatar_url": None}
            return {
                "id": profile.id,
                "username": profile.username,
                "full_name": profile.full_name,
                "avatar_url": profile.avatar_url,
            }

        return {
            "user_id": user_id,
            "friends": [_summary(friend_id) for friend_id in view.friends[:max_friends]],
            "sent": [
                {**edge.to_dict(), "user": _summary(edge.friend_id)} for edge in view.sent
            ],
            "received": [
                {**edge.to_dict(), "user": _summary(edge.requested_by)} for edge in view.received
            ],
        }

    async def get_status(self, user_id: str, other_id: str) -> Dict[str, Any]:
        """Status of the pair's edge, ``"none"`` when there is no edge."""
        user_id = InputValidator.validate_user_id(user_id, "user_id")
        other_id = InputValidator.validate_user_id(other_id, "other_id")

        async with DatabaseService.get_session() as session:
            row = await self._friendship_repo.find_by_pair(session, user_id, other_id)

        if row is None:
            return {"status": "none", "friendship_id": None, "requested_by": None, "blocked_by": None}

        return {
            "status": row.status,
            "friendship_id": row.id,
            "requested_by": row.requested_by,
            "blocked_by": row.blocked_by,
        }

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    async def _require_profiles(self, session: AsyncSession, *user_ids: str) -> None:
        found = await self._profile_repo.find_by_ids(session, user_ids)
        for user_id in user_ids:
            if user_id not in found:
                raise NotFoundError("Profile", user_id)

