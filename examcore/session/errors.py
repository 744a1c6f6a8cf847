from __future__ import annotations

"""Exception hierarchy for the assessment session engine."""

from typing import Any, Optional


class AssessmentError(Exception):
    """Base class for all engine errors."""


class InvalidState(AssessmentError):
    """Operation attempted outside the session state that allows it."""

    def __init__(self, operation: str, state: Any) -> None:
        self.operation = operation
        self.state = state
        label = getattr(state, "value", state)
        super().__init__(f"cannot {operation} while session is {label}")


class AlreadySubmitted(AssessmentError):
    """Duplicate submit(); carries the result stored by the first one."""

    def __init__(self, result: Any) -> None:
        self.result = result
        super().__init__("session has already been submitted")


class SubmissionTransportError(AssessmentError):
    """Remote grading call failed (network, timeout, 5xx or success=false)."""

    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        self.status = status
        super().__init__(message)


class ConfigurationError(AssessmentError, ValueError):
    """Malformed catalog or configuration; the session cannot start."""


class UnknownTask(AssessmentError, IndexError):
    """Task index outside the registry."""

    def __init__(self, index: int, size: int) -> None:
        self.index = index
        super().__init__(f"task index {index} out of range (0..{size - 1})")
