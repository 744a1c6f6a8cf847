from __future__ import annotations

"""Submission: local scoring first, one bounded remote grading call, then merge.

The local result is computed before anything touches the network and is the
value returned whenever the remote call fails, times out or is cancelled.
Remote grading is attempted exactly once; there are no automatic retries.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from ..app.explain import trace as xtrace
from ..results.rewards import rank_for_level
from ..results.schema import SessionResult
from .errors import SubmissionTransportError
from .progress import ProgressSnapshot
from .scoring import auto_grade, compute_total, percentage_of
from .tasks import Task

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 10.0


class GradingClient(Protocol):
    def grade(self, payload: Dict[str, Any], *, timeout: float) -> Dict[str, Any]: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _first(*values: Any) -> Any:
    for v in values:
        if v is not None:
            return v
    return None


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return None


def build_payload(
    snapshot: ProgressSnapshot, tasks: List[Task], local: SessionResult
) -> Dict[str, Any]:
    """Request body for the grading endpoint."""
    answers = []
    for t in tasks:
        a = snapshot.answer_for(t.index)
        if a is None:
            continue
        answers.append({"taskIndex": t.index, "value": a.raw_value, "submittedAt": a.submitted_at.isoformat()})
    return {
        "answers": answers,
        "taskProgress": {str(i): p.to_json() for i, p in enumerate(local.per_task)},
        "totalScoreLocal": local.total_score,
        "maxScoreLocal": local.max_score,
        "percentageLocal": local.percentage,
        "timeSpentSeconds": local.time_spent_seconds,
    }


CHALLENGE_KEYS = ("xpEarned", "rankTitle", "leveledUp", "newLevel")


def is_challenge_response(response: Dict[str, Any]) -> bool:
    """Challenge bodies carry rewards at the top level and score in points."""
    body = response.get("result")
    if isinstance(body, dict) and "totalParticipants" in body:
        return True
    return any(k in response for k in CHALLENGE_KEYS)


def merge_server_result(local: SessionResult, response: Dict[str, Any], pass_threshold: float) -> SessionResult:
    """Overlay server-authoritative fields on the local result.

    Handles both response shapes the backend emits: exam submissions put
    everything under ``result``; challenge submissions put XP and level at the
    top level and use ``result.rank`` for the leaderboard position.
    """
    body = response.get("result") or {}
    if not isinstance(body, dict):
        body = {}

    total = local.total_score
    percentage = local.percentage
    score = _as_int(body.get("score"))
    if score is not None and is_challenge_response(response):
        total = max(0, min(score, local.max_score))
        percentage = percentage_of(total, local.max_score)
    elif score is not None:
        # Exam grading reports ``score`` as a percentage.
        percentage = max(0, min(score, 100))
        total = min(local.max_score, int(local.max_score * percentage / 100 + 0.5))

    passed = body.get("passed")
    if not isinstance(passed, bool):
        passed = percentage >= pass_threshold

    rank_value = body.get("rank")
    rank_title = _first(response.get("rankTitle"), body.get("rankTitle"), rank_value if isinstance(rank_value, str) else None)
    position = _as_int(rank_value) if not isinstance(rank_value, str) else None
    new_level = _as_int(_first(body.get("newLevel"), response.get("newLevel")))
    if rank_title is None and new_level is not None:
        rank_title = rank_for_level(new_level)

    certificate = _first(body.get("certificateId"), body.get("certificate"), response.get("certificate"))
    leveled = _first(body.get("leveledUp"), response.get("leveledUp"))

    server_fields = {k: v for k, v in response.items() if k not in ("success", "message", "result")}
    server_fields.update(body)

    return local.with_updates(
        total_score=total,
        percentage=percentage,
        passed=passed,
        graded_remotely=True,
        certificate_id=str(certificate) if certificate is not None else None,
        xp_awarded=_as_int(_first(body.get("xpAwarded"), body.get("xpEarned"), response.get("xpEarned"))),
        leveled_up=bool(leveled) if leveled is not None else None,
        new_level=new_level,
        rank=rank_title,
        leaderboard_position=position,
        total_participants=_as_int(body.get("totalParticipants")),
        server_fields=server_fields,
    )


class SubmissionCoordinator:
    """Runs one submission: local baseline, single remote attempt, merge or fall back."""

    def __init__(
        self,
        client: Optional[GradingClient],
        *,
        pass_threshold: float,
        timeout: float = DEFAULT_TIMEOUT_S,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self._client = client
        self.pass_threshold = float(pass_threshold)
        self.timeout = float(timeout)
        self._now = now
        self._wakeup: Optional[threading.Event] = None
        self._cancelled = False

    def local_result(
        self, snapshot: ProgressSnapshot, tasks: Iterable[Task], time_spent_seconds: int, *, trigger: str = "user"
    ) -> SessionResult:
        tasks = list(tasks)
        graded = auto_grade(snapshot, tasks)
        summary = compute_total(graded, tasks, self.pass_threshold)
        return SessionResult(
            total_score=summary.total_score,
            max_score=summary.max_score,
            percentage=summary.percentage,
            per_task=tuple(graded.progress_for(t.index) for t in tasks),
            time_spent_seconds=int(time_spent_seconds),
            passed=summary.passed,
            submitted_at=self._now(),
            trigger=trigger,
            local_total_score=summary.total_score,
        )

    def submit(
        self, snapshot: ProgressSnapshot, tasks: Iterable[Task], time_spent_seconds: int, *, trigger: str = "user"
    ) -> SessionResult:
        tasks = list(tasks)
        local = self.local_result(snapshot, tasks, time_spent_seconds, trigger=trigger)
        return self.reconcile(local, snapshot, tasks)

    def reconcile(self, local: SessionResult, snapshot: ProgressSnapshot, tasks: List[Task]) -> SessionResult:
        """Single remote attempt on top of an already computed local result."""
        if self._client is None:
            xtrace("submission_local_only", {"total": local.total_score, "passed": local.passed})
            return local
        try:
            response = self._call_remote(build_payload(snapshot, tasks, local))
        except SubmissionTransportError as exc:
            logger.warning("remote grading unavailable, using local result: %s", exc)
            xtrace("submission_fallback", {"reason": str(exc), "total": local.total_score})
            return local
        except Exception:
            logger.exception("remote grading failed unexpectedly, using local result")
            xtrace("submission_fallback", {"reason": "unexpected", "total": local.total_score})
            return local
        merged = merge_server_result(local, response, self.pass_threshold)
        xtrace("submission_remote_ok", {"total": merged.total_score, "passed": merged.passed})
        return merged

    def _call_remote(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        wakeup = threading.Event()
        outcome: Dict[str, Any] = {}
        self._wakeup = wakeup
        self._cancelled = False

        def worker() -> None:
            try:
                outcome["response"] = self._client.grade(payload, timeout=self.timeout)  # type: ignore[union-attr]
            except Exception as exc:
                outcome["error"] = exc
            finally:
                wakeup.set()

        threading.Thread(target=worker, name="grading-call", daemon=True).start()
        try:
            finished = wakeup.wait(self.timeout)
        finally:
            self._wakeup = None
        if self._cancelled:
            raise SubmissionTransportError("submission cancelled by host")
        if not finished:
            raise SubmissionTransportError(f"grading call timed out after {self.timeout:g}s")
        if "error" in outcome:
            raise outcome["error"]
        response = outcome.get("response")
        if not isinstance(response, dict):
            raise SubmissionTransportError(f"unexpected grading response: {response!r}")
        if response.get("success") is False:
            raise SubmissionTransportError(str(response.get("message") or "grading service reported failure"))
        return response

    def cancel(self) -> bool:
        """Abort an in-flight remote call. The local result is still returned."""
        wakeup = self._wakeup
        if wakeup is None:
            return False
        self._cancelled = True
        wakeup.set()
        return True

    @property
    def in_flight(self) -> bool:
        return self._wakeup is not None
