from .friendship import Friendship
from .profile import Profile

__all__ = ["Friendship", "Profile"]
