"""
Database subsystem: declarative base, mixins and the async engine service.
"""

from src.core.database.base import Base, IdMixin, TimestampMixin, new_uuid
from src.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    # ORM Base & Mixins
    "Base",
    "IdMixin",
    "TimestampMixin",
    "new_uuid",
    # Service
    "DatabaseService",
    # Exceptions
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
