"""
Wildcard event-name matching.

Supported Patterns
------------------
- Exact:    "poem.liked"              matches only "poem.liked"
- Global:   "*"                       matches any event
- Prefix:   "friendship.*"            matches "friendship.blocked", ...
- Suffix:   "*.closed"                matches "theme.closed", ...
- Sandwich: "friendship.*.accepted"   matches "friendship.request.accepted"

Repeated wildcards ("**") collapse to one. Matching is case-sensitive.
"""

from __future__ import annotations


class EventRouter:
    """
    Stateless matcher for event names against subscription patterns.

    >>> router = EventRouter()
    >>> router.matches("friendship.request_sent", "friendship.*")
    True
    >>> router.matches("theme.closed", "poem.*")
    False
    """

    @staticmethod
    def is_pattern(name: str) -> bool:
        return "*" in name

    def matches(self, event_name: str, pattern: str) -> bool:
        if pattern == "*":
            return True

        if "*" not in pattern:
            return event_name == pattern

        while "**" in pattern:
            pattern = pattern.replace("**", "*")

        parts = pattern.split("*")

        if parts[0] and not event_name.startswith(parts[0]):
            return False

        if parts[-1] and not event_name.endswith(parts[-1]):
            return False

        # Middle fragments must appear in order after the prefix and
        # must not overlap the suffix.
        idx = len(parts[0])
        end = len(event_name) - len(parts[-1])
        for mid in parts[1:-1]:
            if not mid:
                continue
            next_idx = event_name.find(mid, idx, end)
            if next_idx == -1:
                return False
            idx = next_idx + len(mid)

        return idx <= end
