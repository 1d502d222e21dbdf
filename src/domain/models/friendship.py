"""
Friendship Domain Model for RhymeRumble.

Purpose
-------
Encode the rules of the friend-request lifecycle between two users,
independent of storage. The database row (`src.database.models.social`)
is a plain schema; services load it, convert it to a `Friendship`
aggregate, run it through `FriendshipStateMachine`, and write the result
back.

States
------
- NONE: no edge exists for the pair (never stored)
- PENDING: one user has asked the other
- ACCEPTED: the recipient accepted
- BLOCKED: the recipient declined under the "block" policy, or either party
  blocked the other
- DECLINED: the recipient declined under the "decline" policy; behaves
  like NONE for the next request

Transitions
-----------
    NONE     --send-->     PENDING
    DECLINED --send-->     PENDING
    PENDING  --accept-->   ACCEPTED
    PENDING  --decline-->  BLOCKED | DECLINED (policy)
    any      --block-->    BLOCKED
    any      --remove-->   NONE

Invariants
----------
- A pair is unordered: ``{a, b}`` and ``{b, a}`` name the same edge, keyed
  by `pair_key`. At most one edge exists per pair.
- Nobody forms an edge with themselves.
- Only the recipient of a pending request may respond to it.

Usage Example
-------------
>>> machine = FriendshipStateMachine()
>>> edge = machine.send_request("alice", "bob", existing=None)
>>> machine.respond(edge, RespondAction.ACCEPT, responder_id="bob")
>>> edge.status
<FriendshipStatus.ACCEPTED: 'accepted'>
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Union

from src.domain.exceptions import (
    AlreadyFriendsError,
    DuplicateRequestError,
    InvalidSelfRequestError,
    InvalidTransitionError,
    NoSuchEdgeError,
    RequestBlockedError,
    ValidationError,
)
from src.domain.models.base import AggregateRoot

if TYPE_CHECKING:
    from src.database.models.social.friendship import Friendship as FriendshipDB


# ============================================================================
# ENUMS
# ============================================================================


class FriendshipStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    BLOCKED = "blocked"
    DECLINED = "declined"


class RespondAction(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"

    @classmethod
    def parse(cls, value: Union[str, "RespondAction"]) -> "RespondAction":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(
                "action", f"Must be one of: {', '.join(a.value for a in cls)}"
            ) from None


class DeclinePolicy(str, Enum):
    """What a declined request turns into."""

    BLOCK = "block"
    DECLINE = "decline"

    @classmethod
    def parse(cls, value: Union[str, "DeclinePolicy"]) -> "DeclinePolicy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(
                "decline_policy", f"Must be one of: {', '.join(p.value for p in cls)}"
            ) from None


def pair_key(user_a: str, user_b: str) -> str:
    """
    Canonical key for an unordered pair of users.

    Examples
    --------
    >>> pair_key("bob", "alice") == pair_key("alice", "bob")
    True
    """
    first, second = sorted((user_a, user_b))
    return f"{first}:{second}"


def new_friendship_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# AGGREGATE
# ============================================================================


class Friendship(AggregateRoot):
    """
    A friendship edge between two users.

    ``user_id`` is the side that sent the current request and ``friend_id``
    the side that received it; ``requested_by`` always equals ``user_id``
    for edges created through `FriendshipStateMachine`, but is kept as its
    own field because blocks can be created without a request.
    """

    def __init__(
        self,
        friendship_id: Optional[str],
        user_id: str,
        friend_id: str,
        status: FriendshipStatus,
        requested_by: str,
        blocked_by: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        responded_at: Optional[datetime] = None,
    ) -> None:
        super().__init__(friendship_id)
        self.user_id = user_id
        self.friend_id = friend_id
        self.status = FriendshipStatus(status)
        self.requested_by = requested_by
        self.blocked_by = blocked_by
        self.created_at = created_at or _utcnow()
        self.updated_at = updated_at or self.created_at
        self.responded_at = responded_at

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    @classmethod
    def from_record(cls, row: "FriendshipDB") -> "Friendship":
        return cls(
            friendship_id=row.id,
            user_id=row.user_id,
            friend_id=row.friend_id,
            status=FriendshipStatus(row.status),
            requested_by=row.requested_by,
            blocked_by=row.blocked_by,
            created_at=row.created_at,
            updated_at=row.updated_at,
            responded_at=row.responded_at,
        )

    def apply_to(self, row: "FriendshipDB") -> None:
        """Copy mutable state back onto a database row."""
        row.user_id = self.user_id
        row.friend_id = self.friend_id
        row.pair_key = self.pair_key
        row.status = self.status.value
        row.requested_by = self.requested_by
        row.blocked_by = self.blocked_by
        row.responded_at = self.responded_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "friendship_id": self.id,
            "user_id": self.user_id,
            "friend_id": self.friend_id,
            "status": self.status.value,
            "requested_by": self.requested_by,
            "blocked_by": self.blocked_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "responded_at": self.responded_at.isoformat() if self.responded_at else None,
        }

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def pair_key(self) -> str:
        return pair_key(self.user_id, self.friend_id)

    def involves(self, user_id: str) -> bool:
        return user_id in (self.user_id, self.friend_id)

    def other_party(self, user_id: str) -> str:
        if user_id == self.user_id:
            return self.friend_id
        if user_id == self.friend_id:
            return self.user_id
        raise ValueError(f"{user_id} is not a party to friendship {self.id}")

    @property
    def recipient_id(self) -> str:
        return self.other_party(self.requested_by)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _touch(self) -> None:
        self.updated_at = _utcnow()

    def accept(self, responder_id: str) -> None:
        self.status = FriendshipStatus.ACCEPTED
        self.responded_at = _utcnow()
        self._touch()
        self.add_domain_event(
            "friendship.request_accepted",
            {
                "friendship_id": self.id,
                "requester_id": self.requested_by,
                "accepted_by": responder_id,
            },
        )

    def decline(self, responder_id: str, policy: DeclinePolicy) -> None:
        if policy is DeclinePolicy.BLOCK:
            self.status = FriendshipStatus.BLOCKED
            self.blocked_by = responder_id
        else:
            self.status = FriendshipStatus.DECLINED
        self.responded_at = _utcnow()
        self._touch()
        self.add_domain_event(
            "friendship.request_declined",
            {
                "friendship_id": self.id,
                "requester_id": self.requested_by,
                "declined_by": responder_id,
                "resulting_status": self.status.value,
            },
        )

    def block(self, blocker_id: str) -> None:
        previous = self.status
        self.status = FriendshipStatus.BLOCKED
        self.blocked_by = blocker_id
        self._touch()
        self.add_domain_event(
            "friendship.blocked",
            {
                "friendship_id": self.id,
                "blocked_by": blocker_id,
                "blocked_user_id": self.other_party(blocker_id),
                "previous_status": previous.value,
            },
        )

    def reopen(self, requester_id: str) -> None:
        """Turn a DECLINED edge into a fresh request from ``requester_id``."""
        target_id = self.other_party(requester_id)
        self.user_id = requester_id
        self.friend_id = target_id
        self.requested_by = requester_id
        self.status = FriendshipStatus.PENDING
        self.blocked_by = None
        self.responded_at = None
        self._touch()
        self._record_request_sent()

    def mark_removed(self, removed_by: str) -> None:
        self.add_domain_event(
            "friendship.removed",
            {
                "friendship_id": self.id,
                "removed_by": removed_by,
                "other_user_id": self.other_party(removed_by),
                "previous_status": self.status.value,
            },
        )

    def _record_request_sent(self) -> None:
        self.add_domain_event(
            "friendship.request_sent",
            {
                "friendship_id": self.id,
                "requester_id": self.user_id,
                "target_id": self.friend_id,
            },
        )


# ============================================================================
# VIEW
# ============================================================================


@dataclass(frozen=True)
class FriendshipView:
    """
    One user's side of their friendships.

    Attributes
    ----------
    friends : List[str]
        Other party of every ACCEPTED edge
    sent : List[Friendship]
        PENDING edges this user requested
    received : List[Friendship]
        PENDING edges awaiting this user's answer
    """

    friends: List[str] = field(default_factory=list)
    sent: List[Friendship] = field(default_factory=list)
    received: List[Friendship] = field(default_factory=list)


# ============================================================================
# STATE MACHINE
# ============================================================================


class FriendshipStateMachine:
    """
    Legal transitions for friendship edges.

    Pure with respect to storage: callers pass the existing edge for the
    pair (or ``None``) and persist whatever comes back.

    Parameters
    ----------
    decline_policy : DeclinePolicy
        ``BLOCK`` turns a declined request into a block (the pair stays
        closed until removed). ``DECLINE`` records the refusal but allows a
        new request right away.
    """

    def __init__(self, decline_policy: Union[str, DeclinePolicy] = DeclinePolicy.BLOCK) -> None:
        self.decline_policy = DeclinePolicy.parse(decline_policy)

    def send_request(
        self,
        requester_id: str,
        target_id: str,
        existing: Optional[Friendship],
    ) -> Friendship:
        """
        Open a pending request from ``requester_id`` to ``target_id``.

        Raises
        ------
        InvalidSelfRequestError
            requester and target are the same user
        DuplicateRequestError
            a request is already pending in either direction
        AlreadyFriendsError
            the pair is already ACCEPTED
        RequestBlockedError
            the pair is BLOCKED
        """
        if requester_id == target_id:
            raise InvalidSelfRequestError(requester_id)

        if existing is not None:
            if existing.status is FriendshipStatus.PENDING:
                raise DuplicateRequestError(requester_id, target_id, existing.requested_by)
            if existing.status is FriendshipStatus.ACCEPTED:
                raise AlreadyFriendsError(requester_id, target_id)
            if existing.status is FriendshipStatus.BLOCKED:
                raise RequestBlockedError(requester_id, target_id, existing.blocked_by)

            existing.reopen(requester_id)
            return existing

        edge = Friendship(
            friendship_id=new_friendship_id(),
            user_id=requester_id,
            friend_id=target_id,
            status=FriendshipStatus.PENDING,
            requested_by=requester_id,
        )
        edge._record_request_sent()
        return edge

    def respond(
        self,
        edge: Friendship,
        action: Union[str, RespondAction],
        responder_id: Optional[str] = None,
    ) -> Friendship:
        """
        Accept or decline a pending request.

        When ``responder_id`` is given it must be the recipient of the request.

        Raises
        ------
        InvalidTransitionError
            the edge is not PENDING, or the responder is not the recipient
        """
        action = RespondAction.parse(action)

        if edge.status is not FriendshipStatus.PENDING:
            raise InvalidTransitionError(edge.id, edge.status.value, action.value)

        if responder_id is not None and responder_id != edge.recipient_id:
            reason = (
                "only the recipient can respond"
                if edge.involves(responder_id)
                else "responder is not part of this friendship"
            )
            raise InvalidTransitionError(edge.id, edge.status.value, action.value, reason)

        responder = responder_id or edge.recipient_id
        if action is RespondAction.ACCEPT:
            edge.accept(responder)
        else:
            edge.decline(responder, self.decline_policy)
        return edge

    def block(
        self,
        blocker_id: str,
        other_id: str,
        existing: Optional[Friendship],
    ) -> Friendship:
        """
        Block ``other_id``. Works from any state; blocking twice is a no-op.
        """
        if blocker_id == other_id:
            raise InvalidSelfRequestError(blocker_id)

        if existing is None:
            existing = Friendship(
                friendship_id=new_friendship_id(),
                user_id=blocker_id,
                friend_id=other_id,
                status=FriendshipStatus.BLOCKED,
                requested_by=blocker_id,
                blocked_by=blocker_id,
            )
            existing.add_domain_event(
                "friendship.blocked",
                {
                    "friendship_id": existing.id,
                    "blocked_by": blocker_id,
                    "blocked_user_id": other_id,
                    "previous_status": "none",
                },
            )
            return existing

        if existing.status is FriendshipStatus.BLOCKED and existing.blocked_by == blocker_id:
            return existing

        existing.block(blocker_id)
        return existing

    def remove(
        self,
        user_id: str,
        other_id: str,
        existing: Optional[Friendship],
    ) -> Friendship:
        """
        Validate removal of the pair's edge, whatever its status.

        Returns the edge to delete.

        Raises
        ------
        NoSuchEdgeError
            no edge exists for the pair
        """
        if existing is None:
            raise NoSuchEdgeError(user_id, other_id)
        existing.mark_removed(user_id)
        return existing

    @staticmethod
    def partition(user_id: str, edges: Iterable[Friendship]) -> FriendshipView:
        """Split a user's edges into friends, sent and received."""
        friends: List[str] = []
        sent: List[Friendship] = []
        received: List[Friendship] = []

        for edge in edges:
            if not edge.involves(user_id):
                continue
            if edge.status is FriendshipStatus.ACCEPTED:
                friends.append(edge.other_party(user_id))
            elif edge.status is FriendshipStatus.PENDING:
                if edge.requested_by == user_id:
                    sent.append(edge)
                else:
                    received.append(edge)

        return FriendshipView(friends=friends, sent=sent, received=received)
