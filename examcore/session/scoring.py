from __future__ import annotations

"""Pure scoring over a progress snapshot.

Nothing here holds state or knows about thresholds per assessment kind; the
caller always passes the pass threshold in.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable

from .progress import ProgressSnapshot, TaskProgress
from .tasks import Task


@dataclass(frozen=True)
class ScoreSummary:
    total_score: int
    max_score: int
    percentage: int
    passed: bool


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (2.5 -> 3, not 2)."""
    return int(math.floor(value + 0.5))


def percentage_of(total_score: float, max_score: float) -> int:
    if max_score <= 0:
        return 0
    return round_half_up(100.0 * total_score / max_score)


def compute_total(snapshot: ProgressSnapshot, tasks: Iterable[Task], pass_threshold: float) -> ScoreSummary:
    tasks = list(tasks)
    max_score = sum(t.points for t in tasks)
    total = 0
    for t in tasks:
        p = snapshot.progress_for(t.index)
        if p.completed:
            total += min(p.score, t.points)
    pct = percentage_of(total, max_score)
    return ScoreSummary(total_score=total, max_score=max_score, percentage=pct, passed=pct >= pass_threshold)


def answers_match(given: Any, expected: Any) -> bool:
    if isinstance(given, str) and isinstance(expected, str):
        return given.lower() == expected.lower()
    return given == expected


def auto_grade(snapshot: ProgressSnapshot, tasks: Iterable[Task]) -> ProgressSnapshot:
    """Grade answered objective tasks against their known answer.

    Full points on a match, else 0. Subjective tasks and objective tasks without
    an answer (or without a configured correct answer) are left untouched.
    """
    updates: Dict[int, TaskProgress] = {}
    for t in tasks:
        if not t.auto_gradable:
            continue
        answer = snapshot.answer_for(t.index)
        if answer is None:
            continue
        prev = snapshot.progress_for(t.index)
        score = t.points if answers_match(answer.raw_value, t.correct_answer) else 0
        updates[t.index] = TaskProgress(completed=True, score=score, attempts_count=prev.attempts_count)
    if not updates:
        return snapshot
    return snapshot.with_progress(updates)
