"""Refresh scheduling state machine.

Owns the auto-refresh flags, the single pending timer slot and the
debounce marker. The invariant it maintains is that a task is pending
(``scheduled``) exactly when auto-refresh is ``enabled``; any divergence is
repaired by ``validate_and_repair`` and reported.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Final

from trmnlscreen.constants import DEBOUNCE_DELAY
from trmnlscreen.scheduling.protocols import TaskHandle, TaskScheduler
from trmnlscreen.system.standby import NullStandby, StandbyController

logger: Final = logging.getLogger(__name__)

# Called with force=True/False, returns False when the debounce gate rejected it
RefreshCallback = Callable[[bool], bool]


class ScheduleStatus(Enum):
    """Observable states of the refresh scheduler."""

    DISABLED = "disabled"
    ENABLED_UNSCHEDULED = "enabled-unscheduled"
    ENABLED_SCHEDULED = "enabled-scheduled"


@dataclass(frozen=True)
class ScheduleInvariantViolation:
    """Record of a repaired divergence between ``enabled`` and ``scheduled``."""

    enabled: bool
    scheduled: bool

    @property
    def action(self) -> str:
        """The repair that was applied."""
        return "scheduled next refresh" if self.enabled else "unscheduled stale task"

    def __str__(self) -> str:
        return (
            f"auto-refresh enabled={self.enabled} but scheduled={self.scheduled}; "
            f"{self.action}"
        )


class RefreshScheduler:
    """Manages the recurring refresh task against the shared event loop.

    States:
    - DISABLED: no task pending
    - ENABLED_UNSCHEDULED: only valid between enabling and the first
      ``schedule_next`` (or while a fired cycle is in flight)
    - ENABLED_SCHEDULED: exactly one refresh or retry task pending

    Cancelling only affects the pending task; a cycle already in flight
    runs to completion.
    """

    def __init__(
        self,
        tasks: TaskScheduler,
        interval: Callable[[], int],
        standby: StandbyController | None = None,
        persist: Callable[[bool], None] | None = None,
        debounce_window: float = DEBOUNCE_DELAY,
        enabled: bool = False,
        on_repair: Callable[[ScheduleInvariantViolation], None] | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            tasks: Event-loop capability used to arm and cancel timers
            interval: Returns the current refresh interval in seconds
            standby: Keeps the device awake while auto-refresh is on
            persist: Called with the new intent when start/stop change it
            debounce_window: Minimum seconds between non-forced fetches
            enabled: Restored auto-refresh intent
            on_repair: Listener notified after each invariant repair
        """
        self.tasks = tasks
        self.interval = interval
        self.standby = standby or NullStandby()
        self.persist = persist
        self.debounce_window = debounce_window
        self.on_repair = on_repair

        self.enabled = enabled
        self.scheduled = False
        self.last_fetch_timestamp: float | None = None
        self.repair_count = 0

        self._handle: TaskHandle | None = None
        self._refresh_callback: RefreshCallback | None = None

    def bind(self, callback: RefreshCallback) -> None:
        """Set the callable that starts a fetch cycle when a task fires."""
        self._refresh_callback = callback

    @property
    def status(self) -> ScheduleStatus:
        if not self.enabled:
            return ScheduleStatus.DISABLED
        if self.scheduled:
            return ScheduleStatus.ENABLED_SCHEDULED
        return ScheduleStatus.ENABLED_UNSCHEDULED

    @property
    def is_state_valid(self) -> bool:
        return self.scheduled == self.enabled

    # ── pending task slot ───────────────────────────────────────────────────
    def schedule_next(self, interval: int | None = None) -> bool:
        """Arm the next refresh, replacing any pending task.

        Args:
            interval: Seconds until the refresh (default: configured interval)

        Returns:
            True if a task was armed, False when auto-refresh is disabled
        """
        if not self.enabled:
            logger.info("Auto-refresh disabled, not scheduling")
            return False

        self._cancel_pending()
        delay = interval if interval is not None else self.interval()
        logger.info("Scheduling next refresh in %d seconds", delay)
        self._handle = self.tasks.schedule_in(delay, self._on_refresh_due)
        self.scheduled = True
        return True

    def schedule_retry(self, delay: int) -> bool:
        """Arm a one-shot retry in the pending slot.

        The retry bypasses the debounce gate when it fires. It is only armed
        while auto-refresh is enabled.

        Returns:
            True if the retry was armed
        """
        if not self.enabled:
            return False

        self._cancel_pending()
        logger.info("Scheduling retry in %d seconds", delay)
        self._handle = self.tasks.schedule_in(delay, self._on_retry_due)
        self.scheduled = True
        return True

    def unschedule(self) -> None:
        """Cancel the pending task, if any. Safe to call repeatedly."""
        if self._cancel_pending():
            logger.debug("Unscheduled refresh task")
        self.scheduled = False

    def validate_and_repair(self) -> ScheduleInvariantViolation | None:
        """Check that a task is pending exactly when auto-refresh is enabled.

        Returns:
            The repaired violation, or None when the state was consistent
        """
        if self.is_state_valid:
            return None

        violation = ScheduleInvariantViolation(self.enabled, self.scheduled)
        if self.enabled:
            logger.warning("Auto-refresh enabled but no task scheduled - fixing!")
            self.schedule_next()
        else:
            logger.warning("Auto-refresh disabled but task still scheduled - fixing!")
            self.unschedule()

        self.repair_count += 1
        if self.on_repair is not None:
            self.on_repair(violation)
        return violation

    # ── debounce ────────────────────────────────────────────────────────────
    def check_debounce(self, force: bool = False) -> bool:
        """Gate fetch attempts that arrive too close together.

        Args:
            force: Skip the window check (direct user action)

        Returns:
            True if the fetch may proceed; the timestamp is updated then
        """
        now = self.tasks.monotonic()
        if not force and self.last_fetch_timestamp is not None:
            elapsed = now - self.last_fetch_timestamp
            if elapsed < self.debounce_window:
                logger.debug("Debouncing - last fetch %.1f seconds ago", elapsed)
                return False

        self.last_fetch_timestamp = now
        return True

    # ── transitions ─────────────────────────────────────────────────────────
    def start(self) -> bool:
        """Enable auto-refresh and trigger an immediate fetch.

        The fetch schedules the following refresh itself once it succeeds.

        Returns:
            False if auto-refresh was already active
        """
        if self.enabled and self.scheduled:
            logger.info("Auto-refresh already active")
            return False

        logger.info("Starting auto-refresh")
        self.unschedule()
        self.enabled = True
        self._persist()
        self.standby.prevent_standby()

        if not self._trigger(force=False):
            self.validate_and_repair()
        return True

    def stop(self, persist: bool = True) -> bool:
        """Disable auto-refresh and cancel the pending task.

        Args:
            persist: Record the new intent; False on shutdown so auto-refresh
                resumes on the next start

        Returns:
            False if auto-refresh was already stopped
        """
        if not self.enabled:
            logger.debug("Auto-refresh already stopped")
            return False

        logger.info("Stopping auto-refresh")
        self.unschedule()
        self.enabled = False
        if persist:
            self._persist()
        self.standby.allow_standby()
        return True

    def suspend(self) -> None:
        """Device is going to sleep: drop the pending task, keep the intent."""
        if self.enabled:
            self.unschedule()

    def resume(self, wifi_auto_restore: bool = False) -> None:
        """Device woke up: fetch now instead of waiting for the timer.

        Args:
            wifi_auto_restore: WiFi comes back on its own; only repair the
                schedule to avoid duplicate network events
        """
        if wifi_auto_restore:
            if self.enabled:
                self.validate_and_repair()
            return

        if not self.enabled:
            return

        self.unschedule()
        if not self._trigger(force=False):
            self.validate_and_repair()

    # ── internals ───────────────────────────────────────────────────────────
    def _persist(self) -> None:
        if self.persist is not None:
            self.persist(self.enabled)

    def _cancel_pending(self) -> bool:
        handle, self._handle = self._handle, None
        if handle is None or handle.cancelled():
            return False
        handle.cancel()
        return True

    def _release_slot(self) -> None:
        self._handle = None
        self.scheduled = False

    def _trigger(self, force: bool) -> bool:
        if self._refresh_callback is None:
            logger.warning("No refresh callback bound, skipping fetch")
            return False
        return self._refresh_callback(force)

    def _on_refresh_due(self) -> None:
        self._release_slot()
        if not self._trigger(force=False):
            self.validate_and_repair()

    def _on_retry_due(self) -> None:
        self._release_slot()
        self._trigger(force=True)
