from .config import AnalyticsConfig
from .metrics import compute_summary
from .smoothing import ewma_by_session

__all__ = [
    "AnalyticsConfig",
    "compute_summary",
    "ewma_by_session",
]
