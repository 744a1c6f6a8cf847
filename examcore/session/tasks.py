from __future__ import annotations

"""Task catalog models and the immutable task registry.

The catalog provider hands over a loosely typed payload (YAML, JSON or a
backend response). ``AssessmentCatalog`` validates it with pydantic and
``TaskRegistry`` freezes it into ordered ``Task`` records for one session.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Literal, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, ValidationError, validator

try:
    import yaml  # type: ignore
except Exception:  # pragma: no cover - dependency issues handled at runtime
    yaml = None  # type: ignore

from .errors import ConfigurationError, UnknownTask

logger = logging.getLogger(__name__)

DEFAULT_POINTS = 10


class TaskType(str, Enum):
    CODING = "coding"
    QUIZ = "quiz"
    PROJECT = "project"
    DESIGN = "design"
    ANALYSIS = "analysis"
    MULTIPLE_CHOICE = "multiple-choice"

    @property
    def objective(self) -> bool:
        """Objective tasks can be graded by comparing against a known answer."""
        return self in OBJECTIVE_TYPES


OBJECTIVE_TYPES = frozenset({TaskType.QUIZ, TaskType.MULTIPLE_CHOICE})


@dataclass(frozen=True)
class Task:
    index: int
    type: TaskType
    title: str
    prompt: str
    points: int
    correct_answer: Any = None
    options: Tuple[str, ...] = ()

    @property
    def auto_gradable(self) -> bool:
        return self.type.objective and self.correct_answer is not None


# --- Catalog payload (pydantic) ---

class CatalogTask(BaseModel):
    title: str
    description: str = ""
    type: TaskType = TaskType.CODING
    points: Optional[int] = Field(default=None, ge=0)
    correct_answer: Any = None
    options: List[str] = Field(default_factory=list)

    @validator("type", pre=True)
    def _normalize_type(cls, v: Any):  # type: ignore[override]
        if isinstance(v, str):
            return v.strip().lower().replace("_", "-")
        return v


class AssessmentCatalog(BaseModel):
    title: str = "Assessment"
    kind: Literal["exam", "challenge"] = "exam"
    duration_seconds: Optional[int] = Field(default=None, gt=0)
    duration_minutes: Optional[float] = Field(default=None, gt=0)
    pass_threshold: Optional[float] = Field(default=None, ge=0, le=100)
    tasks: List[CatalogTask]

    @validator("tasks")
    def _at_least_one_task(cls, v: List[CatalogTask]):  # type: ignore[override]
        if not v:
            raise ValueError("catalog must contain at least one task")
        return v

    def total_seconds(self) -> int:
        if self.duration_seconds is not None:
            return int(self.duration_seconds)
        if self.duration_minutes is not None:
            return int(round(self.duration_minutes * 60))
        raise ConfigurationError("catalog has neither duration_seconds nor duration_minutes")


def parse_catalog(data: Dict[str, Any]) -> AssessmentCatalog:
    """Validate a raw catalog payload, mapping pydantic errors to ConfigurationError."""
    if not isinstance(data, dict):
        raise ConfigurationError("catalog payload must be a mapping")
    payload = dict(data)
    # Accept the camelCase keys the backend uses.
    for camel, snake in (
        ("durationMinutes", "duration_minutes"),
        ("durationSeconds", "duration_seconds"),
        ("passThreshold", "pass_threshold"),
        ("passingScore", "pass_threshold"),
    ):
        if camel in payload and snake not in payload:
            payload[snake] = payload.pop(camel)
    tasks = []
    for raw in payload.get("tasks") or []:
        if isinstance(raw, dict) and "correctAnswer" in raw and "correct_answer" not in raw:
            raw = dict(raw)
            raw["correct_answer"] = raw.pop("correctAnswer")
        tasks.append(raw)
    payload["tasks"] = tasks
    try:
        return AssessmentCatalog.parse_obj(payload)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid catalog: {exc}") from exc


def load_catalog(path: str | Path) -> AssessmentCatalog:
    """Load a catalog from a .yml/.yaml or .json file."""
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigurationError(f"catalog file not found: {p}") from exc
    if p.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        if yaml is None:
            raise ConfigurationError("pyyaml is not installed; cannot read YAML catalogs")
        data = yaml.safe_load(text) or {}
    return parse_catalog(data)


class TaskRegistry:
    """Ordered, immutable list of tasks for one session."""

    def __init__(self, tasks: Sequence[Task]) -> None:
        if not tasks:
            raise ConfigurationError("a session needs at least one task")
        for pos, task in enumerate(tasks):
            if task.index != pos:
                raise ConfigurationError(f"task at position {pos} has index {task.index}")
            if task.points < 0:
                raise ConfigurationError(f"task {pos} has negative points")
        self._tasks: Tuple[Task, ...] = tuple(tasks)

    @classmethod
    def from_catalog(cls, catalog: AssessmentCatalog, *, default_points: int = DEFAULT_POINTS) -> "TaskRegistry":
        tasks = [
            Task(
                index=i,
                type=t.type,
                title=t.title,
                prompt=t.description,
                points=int(t.points) if t.points is not None else int(default_points),
                correct_answer=t.correct_answer,
                options=tuple(t.options),
            )
            for i, t in enumerate(catalog.tasks)
        ]
        logger.debug("registry built from catalog %r with %d tasks", catalog.title, len(tasks))
        return cls(tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter(self._tasks)

    def __getitem__(self, index: int) -> Task:
        return self.get(index)

    def get(self, index: int) -> Task:
        if not isinstance(index, int) or isinstance(index, bool) or not (0 <= index < len(self._tasks)):
            raise UnknownTask(index, len(self._tasks))
        return self._tasks[index]

    @property
    def tasks(self) -> Tuple[Task, ...]:
        return self._tasks

    def max_score(self) -> int:
        return sum(t.points for t in self._tasks)
