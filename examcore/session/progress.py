from __future__ import annotations

"""In-memory progress: answers and completion per task index."""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional

from .errors import InvalidState
from .tasks import TaskRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Answer:
    task_index: int
    raw_value: Any
    submitted_at: datetime


@dataclass(frozen=True)
class TaskProgress:
    completed: bool = False
    score: int = 0
    attempts_count: int = 0

    def to_json(self) -> Dict[str, Any]:
        return {"completed": self.completed, "score": self.score, "attemptsCount": self.attempts_count}


@dataclass(frozen=True)
class ProgressSnapshot:
    """Read-only view of all progress at one instant."""

    answers: Mapping[int, Answer]
    progress: Mapping[int, TaskProgress]
    taken_at: datetime

    def progress_for(self, index: int) -> TaskProgress:
        return self.progress.get(index, TaskProgress())

    def answer_for(self, index: int) -> Optional[Answer]:
        return self.answers.get(index)

    def completed_indices(self) -> list[int]:
        return sorted(i for i, p in self.progress.items() if p.completed)

    def with_progress(self, updates: Mapping[int, TaskProgress]) -> "ProgressSnapshot":
        merged = dict(self.progress)
        merged.update(updates)
        return replace(self, progress=MappingProxyType(merged))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProgressStore:
    """Owns every Answer and TaskProgress of one session.

    Records are created lazily on first interaction; unvisited tasks have none.
    Once sealed (session completed or submitting) every mutation raises
    ``InvalidState``.
    """

    def __init__(self, registry: TaskRegistry, *, now: Callable[[], datetime] = _utcnow) -> None:
        self._registry = registry
        self._now = now
        self._answers: Dict[int, Answer] = {}
        self._progress: Dict[int, TaskProgress] = {}
        self._sealed_reason: Optional[str] = None

    def seal(self, reason: str = "completed") -> None:
        self._sealed_reason = reason

    @property
    def sealed(self) -> bool:
        return self._sealed_reason is not None

    def _ensure_open(self, operation: str) -> None:
        if self._sealed_reason is not None:
            raise InvalidState(operation, self._sealed_reason)

    def set_answer(self, task_index: int, value: Any) -> Answer:
        self._ensure_open("set an answer")
        self._registry.get(task_index)
        answer = Answer(task_index=task_index, raw_value=value, submitted_at=self._now())
        self._answers[task_index] = answer
        prev = self._progress.get(task_index, TaskProgress())
        self._progress[task_index] = replace(prev, attempts_count=prev.attempts_count + 1)
        return answer

    def mark_complete(self, task_index: int, score: Optional[int] = None) -> TaskProgress:
        """Mark a task done. Calling again overwrites the score (re-grading)."""
        self._ensure_open("mark a task complete")
        task = self._registry.get(task_index)
        value = task.points if score is None else score
        if not (0 <= value <= task.points):
            raise ValueError(f"score {value} outside 0..{task.points} for task {task_index}")
        prev = self._progress.get(task_index, TaskProgress())
        updated = replace(prev, completed=True, score=value)
        self._progress[task_index] = updated
        logger.debug("task %d complete with %s/%s", task_index, value, task.points)
        return updated

    def get_answer(self, task_index: int) -> Optional[Answer]:
        self._registry.get(task_index)
        return self._answers.get(task_index)

    def get_progress(self, task_index: int) -> TaskProgress:
        self._registry.get(task_index)
        return self._progress.get(task_index, TaskProgress())

    def completed_count(self) -> int:
        return sum(1 for p in self._progress.values() if p.completed)

    def clear(self) -> None:
        self._answers.clear()
        self._progress.clear()

    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            answers=MappingProxyType(dict(self._answers)),
            progress=MappingProxyType(dict(self._progress)),
            taken_at=self._now(),
        )
