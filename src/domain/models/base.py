"""
Base domain model classes for RhymeRumble.

Purpose
-------
Provide foundational abstractions for domain models that encapsulate
business rules and state transitions independent of persistence.

Responsibilities
----------------
- Define base Entity class with identity and equality semantics
- Define base AggregateRoot class for consistency boundaries
- Track domain events raised by state transitions
- Provide small validation helpers for model invariants

Non-Responsibilities
--------------------
- Persistence (handled by repositories)
- Database schema (handled by SQLAlchemy models)
- Event delivery (services hand pending events to the EventBus)

Usage Example
-------------
>>> class Theme(AggregateRoot):
...     def __init__(self, theme_id: str, title: str):
...         super().__init__(theme_id)
...         self.title = title
...         self.is_active = True
...
...     def close(self) -> None:
...         self.is_active = False
...         self.add_domain_event("theme.closed", {"theme_id": self.id})
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# ============================================================================
# DOMAIN EVENTS
# ============================================================================


@dataclass
class DomainEvent:
    """
    Represents a domain event that has occurred.

    Attributes
    ----------
    event_name : str
        Event name (e.g., "friendship.request_accepted")
    payload : Dict[str, Any]
        Event payload with relevant data
    occurred_at : datetime
        When the event occurred (UTC)
    """

    event_name: str
    payload: Dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ============================================================================
# ENTITY
# ============================================================================


class Entity(ABC):
    """
    Base class for entities with identity.

    Entities are defined by their identity (ID), not their attributes. Two
    entities with the same ID are the same entity even if their attributes
    differ. An entity created in memory before persistence may have no id yet.
    """

    def __init__(self, entity_id: Optional[str]) -> None:
        self._id = entity_id
        self._domain_events: List[DomainEvent] = []

    @property
    def id(self) -> Optional[str]:
        return self._id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entity) or self._id is None:
            return self is other
        return type(self) is type(other) and self.id == other.id

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._id if self._id is not None else id(self)))

    def add_domain_event(self, event_name: str, payload: Dict[str, Any]) -> None:
        """
        Record a domain event to be published after persistence.

        Examples
        --------
        >>> self.add_domain_event("friendship.request_accepted", {
        ...     "friendship_id": self.id,
        ...     "accepted_by": responder_id,
        ... })
        """
        self._domain_events.append(DomainEvent(event_name=event_name, payload=payload))

    def clear_domain_events(self) -> List[DomainEvent]:
        """
        Clear and return all domain events.

        Called by the service after persisting the entity and publishing its
        events.
        """
        events = self._domain_events.copy()
        self._domain_events.clear()
        return events


# ============================================================================
# AGGREGATE ROOT
# ============================================================================


class AggregateRoot(Entity):
    """
    Base class for aggregate roots.

    An aggregate is a cluster of domain objects treated as a single unit for
    data changes. All state transitions of the aggregate go through the root,
    which raises the matching domain events.
    """

    pass


# ============================================================================
# DOMAIN MODEL VALIDATION
# ============================================================================


class DomainValidationError(Exception):
    """
    Exception raised when domain model validation fails.

    Parameters
    ----------
    message : str
        Human-readable error message
    field : Optional[str]
        Field name that failed validation (if applicable)
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


def validate_not_empty(value: Optional[str], field_name: str) -> None:
    """
    Validate that a string is not empty.

    Raises
    ------
    DomainValidationError
        If value is empty or whitespace-only
    """
    if not value or not value.strip():
        raise DomainValidationError(
            f"{field_name} cannot be empty",
            field=field_name,
        )


