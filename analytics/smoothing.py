from __future__ import annotations

"""Smoothing utilities (EWMA by session)."""

import pandas as pd


def ewma_by_session(
    df: pd.DataFrame,
    value_col: str,
    span: int,
    group_cols: list[str] | None = None,
) -> pd.DataFrame:
    """Apply EWMA smoothing per group over submission order.

    Returns a copy of df sorted by submitted_at with a new column
    f"{value_col}_smooth".
    """
    g = df.sort_values("submitted_at", kind="stable").reset_index(drop=True)
    values = g[value_col].astype("float32")
    if group_cols:
        keys = [g[c].astype("string") for c in group_cols]
        smooth = values.groupby(keys).transform(lambda s: s.ewm(span=span).mean())
    else:
        smooth = values.ewm(span=span).mean()
    g[f"{value_col}_smooth"] = smooth.astype("float32")
    return g
