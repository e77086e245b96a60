"""APScheduler integration for periodic blocklist refreshes."""

from .manager import REFRESH_JOB_ID, BlocklistRefreshScheduler
from .types import RefreshRun, SchedulerError

__all__ = [
    "BlocklistRefreshScheduler",
    "REFRESH_JOB_ID",
    "RefreshRun",
    "SchedulerError",
]
