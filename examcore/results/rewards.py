from __future__ import annotations

"""Level and rank tables mirrored from the rewards backend.

The backend is authoritative for XP; these tables only fill display fields
(rank title, progress to next level) that a response leaves out.
"""

from dataclasses import dataclass
from typing import List

# Cumulative XP needed to reach level i + 1.
XP_PER_LEVEL: List[int] = [
    0, 100, 250, 500, 1000, 1750, 2750, 4000, 5500, 7500,
    10000, 13000, 16500, 20500, 25000, 30000, 36000, 43000, 51000, 60000,
]


@dataclass(frozen=True)
class Rank:
    min_level: int
    name: str


RANKS: List[Rank] = [
    Rank(1, "Beginner"),
    Rank(3, "Apprentice"),
    Rank(5, "Skilled"),
    Rank(8, "Expert"),
    Rank(12, "Master"),
    Rank(15, "Grandmaster"),
    Rank(18, "Legend"),
    Rank(20, "Mythic"),
]


def level_for_xp(xp: int) -> int:
    for i in range(len(XP_PER_LEVEL) - 1, -1, -1):
        if xp >= XP_PER_LEVEL[i]:
            return i + 1
    return 1


def xp_for_next_level(level: int) -> int:
    if level >= len(XP_PER_LEVEL):
        return XP_PER_LEVEL[-1] + (level - len(XP_PER_LEVEL) + 1) * 10000
    return XP_PER_LEVEL[level]


def level_progress(xp: int, level: int) -> int:
    """Percent of the way from ``level`` to the next one, capped at 100."""
    floor = XP_PER_LEVEL[level - 1] if 0 < level <= len(XP_PER_LEVEL) else 0
    span = xp_for_next_level(level) - floor
    if span <= 0:
        return 100
    return min(100, int((xp - floor) * 100 / span + 0.5))


def rank_for_level(level: int) -> str:
    for r in reversed(RANKS):
        if level >= r.min_level:
            return r.name
    return RANKS[0].name
