from __future__ import annotations

"""Analytics configuration (hyperparameters) using Pydantic."""

from pydantic import BaseModel, Field


class AnalyticsConfig(BaseModel):
    """Hyperparameters for history summaries.

    - smoothing_span: EWMA span in sessions (>1)
    - recent_window: number of latest sessions used for the "recent" pass rate (>0)
    """

    smoothing_span: int = Field(5, gt=1)
    recent_window: int = Field(10, gt=0)
