"""
Profiles Module
===============

Domain: Public user profiles (username and display fields)

Services:
- ProfileService: Sign-up, lookup and profile edits
"""

from .service import ProfileRepository, ProfileService

__all__ = [
    "ProfileService",
    "ProfileRepository",
]
