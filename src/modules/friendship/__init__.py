"""
Friendship Module
=================

Domain: Friend requests, friendships and blocks between profiles

Services:
- FriendshipService: Request lifecycle and friend lists
"""

from .service import FriendshipRepository, FriendshipService

__all__ = [
    "FriendshipService",
    "FriendshipRepository",
]
