from __future__ import annotations

"""SessionResult: the one terminal record a session produces."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from ..session.progress import TaskProgress


@dataclass(frozen=True)
class SessionResult:
    total_score: int
    max_score: int
    percentage: int
    per_task: Tuple[TaskProgress, ...]
    time_spent_seconds: int
    passed: bool
    submitted_at: datetime
    trigger: str = "user"
    graded_remotely: bool = False
    local_total_score: Optional[int] = None
    certificate_id: Optional[str] = None
    xp_awarded: Optional[int] = None
    leveled_up: Optional[bool] = None
    new_level: Optional[int] = None
    rank: Optional[str] = None
    leaderboard_position: Optional[int] = None
    total_participants: Optional[int] = None
    server_fields: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def forced(self) -> bool:
        return self.trigger == "expired"

    @property
    def completed_tasks(self) -> int:
        return sum(1 for p in self.per_task if p.completed)

    def with_updates(self, **changes: Any) -> "SessionResult":
        if "server_fields" in changes:
            changes["server_fields"] = MappingProxyType(dict(changes["server_fields"]))
        return replace(self, **changes)

    def to_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "totalScore": self.total_score,
            "maxScore": self.max_score,
            "percentage": self.percentage,
            "perTask": [p.to_json() for p in self.per_task],
            "timeSpentSeconds": self.time_spent_seconds,
            "passed": self.passed,
            "submittedAt": self.submitted_at.isoformat(),
            "trigger": self.trigger,
            "forced": self.forced,
            "gradedRemotely": self.graded_remotely,
        }
        optional = {
            "localTotalScore": self.local_total_score,
            "certificateId": self.certificate_id,
            "xpAwarded": self.xp_awarded,
            "leveledUp": self.leveled_up,
            "newLevel": self.new_level,
            "rank": self.rank,
            "leaderboardPosition": self.leaderboard_position,
            "totalParticipants": self.total_participants,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data
