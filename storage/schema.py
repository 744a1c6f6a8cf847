from __future__ import annotations

"""Schema constants and Pydantic models for the Parquet results history."""

from datetime import datetime, timezone
from typing import Literal

import pandas as pd
from pandas.api.types import CategoricalDtype
from pydantic import BaseModel, Field, validator

# --- Constants ---

KINDS = {"exam", "challenge"}
TRIGGERS = {"user", "submit_now", "expired"}


def _cat_dtype(categories: set[str]) -> CategoricalDtype:
    return CategoricalDtype(categories=sorted(categories), ordered=False)


DTYPES = {
    "session_id": "string",
    # timezone-aware UTC timestamps
    "submitted_at": pd.DatetimeTZDtype(tz="UTC"),
    "title": "string",
    "kind": _cat_dtype(KINDS),
    "trigger": _cat_dtype(TRIGGERS),
    "total_score": "UInt32",
    "max_score": "UInt32",
    "percentage": "UInt8",
    "passed": "boolean",
    "graded_remotely": "boolean",
    "time_spent_s": "UInt32",
    "tasks_total": "UInt16",
    "tasks_completed": "UInt16",
}


# --- Pydantic models ---

class ResultRow(BaseModel):
    session_id: str
    submitted_at: datetime
    title: str
    kind: Literal[tuple(KINDS)]  # type: ignore[valid-type]
    trigger: Literal[tuple(TRIGGERS)]  # type: ignore[valid-type]
    total_score: int = Field(ge=0, le=4294967295)
    max_score: int = Field(ge=0, le=4294967295)
    percentage: int = Field(ge=0, le=100)
    passed: bool
    graded_remotely: bool = False
    time_spent_s: int = Field(ge=0, le=4294967295)
    tasks_total: int = Field(ge=1, le=65535)
    tasks_completed: int = Field(ge=0, le=65535)

    @validator("max_score")
    def _max_ge_total(cls, v: int, values):  # type: ignore[override]
        total = values.get("total_score")
        if total is not None and int(total) > v:
            raise ValueError("total_score must be <= max_score")
        return v

    @validator("tasks_completed")
    def _completed_le_total(cls, v: int, values):  # type: ignore[override]
        total = values.get("tasks_total")
        if total is not None and v > int(total):
            raise ValueError("tasks_completed must be <= tasks_total")
        return v

    @validator("submitted_at")
    def _ensure_utc(cls, v: datetime):  # type: ignore[override]
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)
