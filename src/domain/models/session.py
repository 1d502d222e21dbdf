"""
Session state for an authenticated client.

Purpose
-------
Hold the "who is signed in" state as an explicit, owned value instead of a
shared global. A `SessionStateMachine` is the only writer: sign-in,
token refresh and sign-out each go through it and produce a new immutable
`SessionState`. Callers pass the machine (or a snapshot of its state) to
whatever needs the current user.

States
------
    LOADING        restoring a stored session or signing in
    AUTHENTICATED  a user is signed in with a valid token
    ANONYMOUS      nobody is signed in
    ERROR          the last sign-in attempt failed

Transitions
-----------
    ANONYMOUS | ERROR  --begin_sign_in-->    LOADING
    LOADING            --complete_sign_in--> AUTHENTICATED
    LOADING            --fail-->             ERROR
    LOADING            --restore_none-->     ANONYMOUS
    AUTHENTICATED      --refresh-->          AUTHENTICATED
    any                --sign_out-->         ANONYMOUS
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from src.domain.exceptions import InvalidOperationError
from src.domain.models.base import validate_not_empty


class SessionStatus(str, Enum):
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"
    ERROR = "error"


@dataclass(frozen=True)
class SessionState:
    """
    Immutable snapshot of a client session.

    Only AUTHENTICATED states carry ``user_id`` and ``access_token``; only
    ERROR states carry ``error``.
    """

    status: SessionStatus
    user_id: Optional[str] = None
    access_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    error: Optional[str] = None
    version: int = 0

    @property
    def is_authenticated(self) -> bool:
        return self.status is SessionStatus.AUTHENTICATED

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "user_id": self.user_id,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "error": self.error,
            "version": self.version,
        }


SessionListener = Callable[[SessionState, SessionState], None]


class SessionStateMachine:
    """
    Single writer for a client's `SessionState`.

    Every transition validates the current status, builds the next state,
    bumps ``version`` and notifies listeners with ``(previous, current)``.
    Illegal transitions raise `InvalidOperationError` and leave the state
    untouched.
    """

    def __init__(self, initial: Optional[SessionState] = None) -> None:
        self._state = initial or SessionState(status=SessionStatus.LOADING)
        self._listeners: List[SessionListener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def status(self) -> SessionStatus:
        return self._state.status

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require(self, action: str, *allowed: SessionStatus) -> None:
        if self._state.status not in allowed:
            raise InvalidOperationError(
                action,
                f"session is {self._state.status.value}, expected "
                f"{' or '.join(s.value for s in allowed)}",
            )

    def _transition(self, **changes: Any) -> SessionState:
        previous = self._state
        self._state = SessionState(version=previous.version + 1, **changes)
        for listener in list(self._listeners):
            listener(previous, self._state)
        return self._state

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def begin_sign_in(self) -> SessionState:
        self._require("begin_sign_in", SessionStatus.ANONYMOUS, SessionStatus.ERROR)
        return self._transition(status=SessionStatus.LOADING)

    def complete_sign_in(
        self,
        user_id: str,
        access_token: str,
        expires_at: Optional[datetime] = None,
    ) -> SessionState:
        self._require("complete_sign_in", SessionStatus.LOADING)
        validate_not_empty(user_id, "user_id")
        validate_not_empty(access_token, "access_token")
        return self._transition(
            status=SessionStatus.AUTHENTICATED,
            user_id=user_id,
            access_token=access_token,
            expires_at=expires_at,
        )

    def restore_none(self) -> SessionState:
        """No stored session was found while LOADING."""
        self._require("restore_none", SessionStatus.LOADING)
        return self._transition(status=SessionStatus.ANONYMOUS)

    def fail(self, reason: str) -> SessionState:
        self._require("fail", SessionStatus.LOADING)
        return self._transition(status=SessionStatus.ERROR, error=reason)

    def refresh(self, access_token: str, expires_at: Optional[datetime] = None) -> SessionState:
        """Swap in a new token for the signed-in user."""
        self._require("refresh", SessionStatus.AUTHENTICATED)
        validate_not_empty(access_token, "access_token")
        current = self._state
        return self._transition(
            status=SessionStatus.AUTHENTICATED,
            user_id=current.user_id,
            access_token=access_token,
            expires_at=expires_at,
        )

    def sign_out(self) -> SessionState:
        return self._transition(status=SessionStatus.ANONYMOUS)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def require_user(self) -> str:
        """
        Id of the signed-in user.

        Raises
        ------
        InvalidOperationError
            when no user is authenticated or the token has expired
        """
        state = self._state
        if not state.is_authenticated or state.user_id is None:
            raise InvalidOperationError("require_user", "no user is signed in")
        if state.is_expired():
            raise InvalidOperationError("require_user", "session has expired")
        return state.user_id

