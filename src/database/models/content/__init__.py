from .poem import Poem
from .poem_like import PoemLike
from .theme import Theme

__all__ = ["Poem", "PoemLike", "Theme"]
