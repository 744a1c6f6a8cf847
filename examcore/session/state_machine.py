from __future__ import annotations

"""AssessmentSession: the public contract the host UI drives.

configuring -> active <-> paused -> completed

``completed`` is only reachable through submission, either explicit or forced
by the clock. Every mutating call first lets the clock re-evaluate the
deadline, so an expired session is force-submitted before any late edit can
land. The object is single-threaded; a multi-threaded host must guard it with
one mutex (see ``TickScheduler``).
"""

import logging
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from ..app import events
from ..app.events import EventBus
from ..app.explain import trace as xtrace
from ..results.schema import SessionResult
from .clock import ClockSource, SessionClock
from .errors import AlreadySubmitted, ConfigurationError, InvalidState
from .progress import Answer, ProgressSnapshot, ProgressStore, TaskProgress
from .submission import DEFAULT_TIMEOUT_S, GradingClient, SubmissionCoordinator
from .tasks import DEFAULT_POINTS, AssessmentCatalog, Task, TaskRegistry

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    CONFIGURING = "configuring"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class AssessmentSession:
    def __init__(
        self,
        registry: TaskRegistry,
        *,
        total_seconds: int,
        pass_threshold: Optional[float],
        client: Optional[GradingClient] = None,
        timeout: float = DEFAULT_TIMEOUT_S,
        allow_pause: bool = True,
        clock_source: Optional[ClockSource] = None,
        bus: Optional[EventBus] = None,
        title: str = "Assessment",
        kind: str = "exam",
    ) -> None:
        if pass_threshold is None:
            raise ConfigurationError("pass_threshold must be supplied explicitly")
        if not (0 <= float(pass_threshold) <= 100):
            raise ConfigurationError(f"pass_threshold {pass_threshold} outside 0..100")
        if int(total_seconds) <= 0:
            raise ConfigurationError("total_seconds must be positive")
        self.session_id = str(uuid4())
        self.registry = registry
        self.title = title
        self.kind = kind
        self.total_seconds = int(total_seconds)
        self.pass_threshold = float(pass_threshold)
        self.allow_pause = bool(allow_pause)
        self.bus = bus or EventBus()
        self.clock = SessionClock(clock_source)
        self.clock.on_expire(self._on_expired)
        self.store = ProgressStore(registry)
        self.coordinator = SubmissionCoordinator(client, pass_threshold=self.pass_threshold, timeout=timeout)
        self.current_index = 0
        self._state = SessionState.CONFIGURING
        self._submitting = False
        self._result: Optional[SessionResult] = None
        xtrace("session_configured", {"title": title, "kind": kind, "tasks": len(registry), "seconds": self.total_seconds})

    @classmethod
    def from_catalog(
        cls,
        catalog: AssessmentCatalog,
        *,
        pass_threshold: Optional[float] = None,
        default_points: int = DEFAULT_POINTS,
        **kwargs: Any,
    ) -> "AssessmentSession":
        threshold = pass_threshold if pass_threshold is not None else catalog.pass_threshold
        registry = TaskRegistry.from_catalog(catalog, default_points=default_points)
        return cls(
            registry,
            total_seconds=catalog.total_seconds(),
            pass_threshold=threshold,
            title=catalog.title,
            kind=catalog.kind,
            **kwargs,
        )

    # --- state ---

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def result(self) -> Optional[SessionResult]:
        return self._result

    @property
    def submitting(self) -> bool:
        return self._submitting

    def _require(self, operation: str, *allowed: SessionState) -> None:
        if self._submitting:
            raise InvalidState(operation, "submitting")
        if self._state not in allowed:
            raise InvalidState(operation, self._state)

    def _check_deadline(self) -> None:
        # Expiry wins over whatever the caller was about to do.
        if self._state is SessionState.ACTIVE and not self._submitting:
            self.clock.tick()

    # --- lifecycle ---

    def start(self) -> None:
        self._require("start", SessionState.CONFIGURING)
        self.clock.start(self.total_seconds)
        self._state = SessionState.ACTIVE
        logger.info("session %r started: %d tasks, %ss", self.title, len(self.registry), self.total_seconds)
        xtrace("session_started", {"title": self.title, "seconds": self.total_seconds})
        self.bus.emit(events.SESSION_STARTED, self)

    def tick(self) -> int:
        """Host heartbeat, about once a second. Returns the remaining seconds."""
        if self._state in (SessionState.ACTIVE, SessionState.PAUSED):
            self.clock.tick()
        return self.remaining()

    def pause(self) -> None:
        if not self.allow_pause:
            raise InvalidState("pause", "not pausable")
        self._check_deadline()
        self._require("pause", SessionState.ACTIVE)
        self.clock.pause()
        self._state = SessionState.PAUSED
        xtrace("session_paused", {"remaining": self.clock.remaining()})
        self.bus.emit(events.SESSION_PAUSED, self)

    def resume(self) -> None:
        self._require("resume", SessionState.PAUSED)
        self.clock.resume()
        self._state = SessionState.ACTIVE
        xtrace("session_resumed", {"remaining": self.clock.remaining()})
        self.bus.emit(events.SESSION_RESUMED, self)

    def abandon(self) -> None:
        """Leave without submitting. Nothing is scored and all progress is dropped."""
        self._require("abandon", SessionState.CONFIGURING, SessionState.ACTIVE, SessionState.PAUSED)
        self.clock.stop()
        self.store.clear()
        self.store.seal(SessionState.ABANDONED.value)
        self._state = SessionState.ABANDONED
        logger.info("session %r abandoned", self.title)
        xtrace("session_abandoned", {"title": self.title})
        self.bus.emit(events.SESSION_ABANDONED, self)

    # --- answers and navigation ---

    def set_answer(self, task_index: int, value: Any) -> Answer:
        self._check_deadline()
        self._require("set an answer", SessionState.ACTIVE)
        return self.store.set_answer(task_index, value)

    def mark_complete(self, task_index: int, score: Optional[int] = None) -> TaskProgress:
        self._check_deadline()
        self._require("mark a task complete", SessionState.ACTIVE)
        return self.store.mark_complete(task_index, score)

    def get_answer(self, task_index: int) -> Optional[Answer]:
        return self.store.get_answer(task_index)

    def get_progress(self, task_index: int) -> TaskProgress:
        return self.store.get_progress(task_index)

    def snapshot(self) -> ProgressSnapshot:
        return self.store.snapshot()

    def go_to(self, task_index: int) -> Task:
        """Jump to any task; completion of the others does not matter."""
        self._check_deadline()
        self._require("navigate", SessionState.ACTIVE)
        task = self.registry.get(task_index)
        self.current_index = task.index
        return task

    def next_task(self) -> Task:
        return self.go_to(min(self.current_index + 1, len(self.registry) - 1))

    def previous_task(self) -> Task:
        return self.go_to(max(self.current_index - 1, 0))

    @property
    def current_task(self) -> Task:
        return self.registry.get(self.current_index)

    def progress_ratio(self) -> int:
        """Completed tasks as a whole percentage."""
        return int(self.store.completed_count() * 100 / len(self.registry) + 0.5)

    # --- clock ---

    def remaining(self) -> int:
        if self._state is SessionState.CONFIGURING:
            return self.total_seconds
        return self.clock.remaining()

    def time_spent(self) -> int:
        return self.clock.elapsed()

    # --- submission ---

    def submit(self, trigger: str = "user") -> SessionResult:
        if self._state is SessionState.COMPLETED or self._submitting:
            raise AlreadySubmitted(self._result)
        self._check_deadline()
        if self._state is SessionState.COMPLETED:
            # The deadline passed just now and forced its own submission.
            raise AlreadySubmitted(self._result)
        self._require("submit", SessionState.ACTIVE, SessionState.PAUSED)
        return self._finish(trigger)

    def submit_now(self) -> SessionResult:
        return self.submit(trigger="submit_now")

    def cancel_submission(self) -> bool:
        """Abort an in-flight grading call; submit() then returns the local result."""
        return self.coordinator.cancel()

    def _on_expired(self) -> None:
        xtrace("clock_expired", {"title": self.title})
        self.bus.emit(events.CLOCK_EXPIRED, self)
        if self._state in (SessionState.ACTIVE, SessionState.PAUSED) and not self._submitting:
            logger.info("time is up for %r, submitting current progress", self.title)
            self._finish("expired")

    def _finish(self, trigger: str) -> SessionResult:
        self._submitting = True
        self.clock.stop()
        self.store.seal("submitting")
        snapshot = self.store.snapshot()
        tasks = list(self.registry)
        result = self.coordinator.local_result(snapshot, tasks, self.clock.elapsed(), trigger=trigger)
        try:
            result = self.coordinator.reconcile(result, snapshot, tasks)
        except Exception:
            logger.exception("submission failed, falling back to local scoring")
        finally:
            # An interrupted remote step still completes with the local result.
            self._submitting = False
            self._complete(result, trigger)
        return result

    def _complete(self, result: SessionResult, trigger: str) -> None:
        self._result = result
        self._state = SessionState.COMPLETED
        self.store.seal(SessionState.COMPLETED.value)
        logger.info(
            "session %r completed (%s): %d/%d (%d%%) passed=%s remote=%s",
            self.title, trigger, result.total_score, result.max_score,
            result.percentage, result.passed, result.graded_remotely,
        )
        xtrace("session_completed", result.to_json())
        self.bus.emit(events.SESSION_COMPLETED, result)
