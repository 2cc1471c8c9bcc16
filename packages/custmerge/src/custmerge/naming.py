"""Representative display name for a merge group."""

from __future__ import annotations

from collections.abc import Sequence

LENGTH_RATIO_LIMIT = 1.5


def suggest_merged_name(members: Sequence[str]) -> str:
    """Prefer the most complete member (most words) unless it is much longer
    than the shortest one, in which case the shortest wins.

    Ties go to the earlier member, so the result is fixed for a given member order.
    """
    if not members:
        return ""
    most_complete = max(members, key=lambda m: len(m.split()))
    shortest = min(members, key=len)
    if len(most_complete) > LENGTH_RATIO_LIMIT * len(shortest):
        return shortest
    return most_complete
