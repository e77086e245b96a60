"""Type definitions for the scheduler module."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


class SchedulerError(Exception):
    """Base exception for scheduler-related errors."""

    pass


@dataclass
class RefreshRun:
    """Outcome of one scheduled blocklist refresh."""

    started_at: datetime
    completed_at: Optional[datetime] = None
    success: Optional[bool] = None
    error_message: Optional[str] = None
