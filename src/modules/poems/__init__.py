"""
Poems Module
============

Domain: Themes (poetry battles), poems and likes

Services:
- PoemService: Theme and poem lifecycle, likes, closing battles
"""

from .service import PoemLikeRepository, PoemRepository, PoemService, ThemeRepository

__all__ = [
    "PoemService",
    "ThemeRepository",
    "PoemRepository",
    "PoemLikeRepository",
]
