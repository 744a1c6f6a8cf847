from __future__ import annotations

"""Parquet ledger of completed session results."""

from pathlib import Path
from typing import Any

import pandas as pd

try:
    import pyarrow  # noqa: F401
except Exception:  # pragma: no cover
    pyarrow = None  # type: ignore

from .schema import DTYPES, KINDS, ResultRow


DATA_FILE = "session_results.parquet"


def _empty_df() -> pd.DataFrame:
    return pd.DataFrame({k: pd.Series(dtype=v) for k, v in DTYPES.items()})


def _fix_dtypes(df: pd.DataFrame) -> pd.DataFrame:
    for col, dt in DTYPES.items():
        if col not in df.columns:
            df[col] = pd.Series(pd.NA, index=df.index)
        df[col] = df[col].astype(dt)
    return df[list(DTYPES.keys())]


def init_store(data_dir: Path) -> None:
    data_dir = Path(data_dir)
    data_dir.mkdir(parents=True, exist_ok=True)
    path = data_dir / DATA_FILE
    if not path.exists():
        _empty_df().to_parquet(path, engine="pyarrow", compression="zstd", index=False)


def row_from_result(result: Any, *, session_id: str, title: str, kind: str) -> ResultRow:
    """Flatten a SessionResult plus session identity into a validated row."""
    return ResultRow(
        session_id=session_id,
        submitted_at=result.submitted_at,
        title=title,
        kind=kind,
        trigger=result.trigger,
        total_score=result.total_score,
        max_score=result.max_score,
        percentage=result.percentage,
        passed=result.passed,
        graded_remotely=result.graded_remotely,
        time_spent_s=result.time_spent_seconds,
        tasks_total=len(result.per_task),
        tasks_completed=result.completed_tasks,
    )


def validate_records(records: list[ResultRow]) -> pd.DataFrame:
    if not isinstance(records, list):
        raise TypeError("records must be a list[ResultRow]")
    rows = [ResultRow.parse_obj(r) if not isinstance(r, ResultRow) else r for r in records]
    df = pd.DataFrame([r.dict() for r in rows], columns=list(DTYPES.keys()))
    return _fix_dtypes(df)


def append_results(df_new: pd.DataFrame, data_dir: Path) -> None:
    f = Path(data_dir) / DATA_FILE
    if f.exists():
        df_old = pd.read_parquet(f, engine="pyarrow")
    else:
        df_old = _empty_df()
    combined = pd.concat([_fix_dtypes(df_old), _fix_dtypes(df_new.copy())], ignore_index=True)
    # One row per session; a re-appended session replaces its earlier row.
    combined = combined.drop_duplicates(subset=["session_id"], keep="last")
    _fix_dtypes(combined).to_parquet(f, engine="pyarrow", compression="zstd", index=False)


def load_all(data_dir: Path) -> pd.DataFrame:
    f = Path(data_dir) / DATA_FILE
    if not f.exists():
        return _empty_df()
    return _fix_dtypes(pd.read_parquet(f, engine="pyarrow"))


def query_kind(df: pd.DataFrame, kind: str) -> pd.DataFrame:
    if kind not in KINDS:
        raise ValueError(f"Unknown kind: {kind}")
    dff = df[df["kind"].astype("string") == kind]
    return dff.sort_values("submitted_at").reset_index(drop=True)


def export_ndjson(df: pd.DataFrame, out_path: Path) -> None:
    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    df.to_json(out_path, orient="records", lines=True, date_format="iso")


class ResultHistorySink:
    """Event-bus subscriber that appends every completed result to the ledger."""

    def __init__(self, data_dir: Path, *, session_id: str, title: str, kind: str) -> None:
        self.data_dir = Path(data_dir)
        self.session_id = session_id
        self.title = title
        self.kind = kind

    def __call__(self, result: Any) -> None:
        init_store(self.data_dir)
        row = row_from_result(result, session_id=self.session_id, title=self.title, kind=self.kind)
        append_results(validate_records([row]), self.data_dir)
