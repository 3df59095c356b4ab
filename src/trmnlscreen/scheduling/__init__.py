"""Scheduling package: backoff, refresh state machine and event-loop seams."""

from trmnlscreen.scheduling.backoff import BackoffPolicy
from trmnlscreen.scheduling.protocols import (
    AsyncioTaskScheduler,
    ManualTaskScheduler,
    TaskHandle,
    TaskScheduler,
)
from trmnlscreen.scheduling.refresh import (
    RefreshScheduler,
    ScheduleInvariantViolation,
    ScheduleStatus,
)

__all__ = [
    "AsyncioTaskScheduler",
    "BackoffPolicy",
    "ManualTaskScheduler",
    "RefreshScheduler",
    "ScheduleInvariantViolation",
    "ScheduleStatus",
    "TaskHandle",
    "TaskScheduler",
]
