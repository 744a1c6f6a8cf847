from __future__ import annotations

"""Summary metrics over the results history."""

import numpy as np
import pandas as pd

from .config import AnalyticsConfig

SUMMARY_COLUMNS = [
    "kind",
    "sessions",
    "pass_rate",
    "recent_pass_rate",
    "mean_percentage",
    "median_time_s",
    "forced_rate",
    "fallback_rate",
]


def compute_summary(df: pd.DataFrame, cfg: AnalyticsConfig) -> pd.DataFrame:
    """One row per assessment kind.

    Rates are fractions in [0, 1]; ``fallback_rate`` is the share of sessions
    whose result was never confirmed by the grading service.
    """
    rows = []
    if df.empty:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)
    ordered = df.sort_values("submitted_at", kind="stable")
    for kind, g in ordered.groupby(ordered["kind"].astype("string"), sort=True):
        passed = g["passed"].astype(bool).to_numpy()
        recent = passed[-int(cfg.recent_window):]
        rows.append(
            {
                "kind": kind,
                "sessions": int(len(g)),
                "pass_rate": float(np.mean(passed)),
                "recent_pass_rate": float(np.mean(recent)),
                "mean_percentage": float(np.mean(g["percentage"].astype("float32").to_numpy())),
                "median_time_s": float(np.median(g["time_spent_s"].astype("float32").to_numpy())),
                "forced_rate": float(np.mean((g["trigger"].astype("string") == "expired").to_numpy())),
                "fallback_rate": float(np.mean(~g["graded_remotely"].astype(bool).to_numpy())),
            }
        )
    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)
