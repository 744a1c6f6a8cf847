"""examcore: timed assessment session engine.

Countdown, per-task progress, deterministic scoring and a submission path that
always ends with a result, even when remote grading is unreachable.
"""

from __future__ import annotations

from .session.state_machine import AssessmentSession, SessionState
from .session.clock import ClockSource, ManualClock, MonotonicClock, SessionClock
from .session.errors import (
    AlreadySubmitted,
    AssessmentError,
    ConfigurationError,
    InvalidState,
    SubmissionTransportError,
    UnknownTask,
)
from .session.progress import Answer, ProgressSnapshot, ProgressStore, TaskProgress
from .session.scoring import ScoreSummary, auto_grade, compute_total
from .session.submission import GradingClient, SubmissionCoordinator
from .session.tasks import AssessmentCatalog, Task, TaskRegistry, TaskType, load_catalog, parse_catalog
from .results.schema import SessionResult

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "AlreadySubmitted",
    "Answer",
    "AssessmentCatalog",
    "AssessmentError",
    "AssessmentSession",
    "ClockSource",
    "ConfigurationError",
    "GradingClient",
    "InvalidState",
    "ManualClock",
    "MonotonicClock",
    "ProgressSnapshot",
    "ProgressStore",
    "ScoreSummary",
    "SessionClock",
    "SessionResult",
    "SessionState",
    "SubmissionCoordinator",
    "SubmissionTransportError",
    "Task",
    "TaskProgress",
    "TaskRegistry",
    "TaskType",
    "UnknownTask",
    "auto_grade",
    "compute_total",
    "load_catalog",
    "parse_catalog",
]
