from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional, Sequence

from examcore.session.errors import SubmissionTransportError
from examcore.session.tasks import Task, TaskRegistry, TaskType


def make_registry(points: Sequence[int], types: Optional[Sequence[TaskType]] = None, answers: Optional[Sequence[Any]] = None) -> TaskRegistry:
    types = types or [TaskType.CODING] * len(points)
    answers = answers or [None] * len(points)
    return TaskRegistry(
        [
            Task(index=i, type=types[i], title=f"Task {i + 1}", prompt="", points=p, correct_answer=answers[i])
            for i, p in enumerate(points)
        ]
    )


class OkClient:
    def __init__(self, response: Optional[Dict[str, Any]] = None) -> None:
        self.response = response if response is not None else {"success": True, "result": {"passed": True}}
        self.payloads: List[Dict[str, Any]] = []

    def grade(self, payload: Dict[str, Any], *, timeout: float) -> Dict[str, Any]:
        self.payloads.append(payload)
        return self.response


class FailingClient:
    def __init__(self) -> None:
        self.calls = 0

    def grade(self, payload: Dict[str, Any], *, timeout: float) -> Dict[str, Any]:
        self.calls += 1
        raise SubmissionTransportError("connection refused")


class HangingClient:
    """Never answers until released."""

    def __init__(self) -> None:
        self.release = threading.Event()
        self.calls = 0

    def grade(self, payload: Dict[str, Any], *, timeout: float) -> Dict[str, Any]:
        self.calls += 1
        self.release.wait(10)
        return {"success": True, "result": {"passed": True, "score": 0}}
