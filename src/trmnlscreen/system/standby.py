"""Device standby (idle-suspend) control."""

from __future__ import annotations

import logging
import subprocess
from typing import Final, Protocol, runtime_checkable

logger: Final = logging.getLogger(__name__)


@runtime_checkable
class StandbyController(Protocol):
    """Protocol for keeping the device awake while auto-refresh runs."""

    def prevent_standby(self) -> None:
        """Stop the device from suspending on idle."""
        ...

    def allow_standby(self) -> None:
        """Restore normal idle-suspend behaviour."""
        ...


class NullStandby:
    """Standby controller for hosts without power management."""

    def prevent_standby(self) -> None:
        logger.info("Device sleep prevented (auto-refresh active)")

    def allow_standby(self) -> None:
        logger.info("Device sleep re-enabled (normal behavior)")


class SystemdInhibitStandby:
    """Holds a ``systemd-inhibit`` lock for as long as standby is prevented."""

    def __init__(self, who: str = "trmnl-screen", what: str = "idle:sleep") -> None:
        """Initialize with the inhibitor identity.

        Args:
            who: Name shown by ``systemd-inhibit --list``
            what: Colon-separated lock types to take
        """
        self.who = who
        self.what = what
        self._proc: subprocess.Popen[bytes] | None = None

    @property
    def active(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    def prevent_standby(self) -> None:
        if self.active:
            return
        try:
            self._proc = subprocess.Popen(
                [
                    "systemd-inhibit",
                    f"--what={self.what}",
                    f"--who={self.who}",
                    "--why=Auto-refresh active",
                    "--mode=block",
                    "sleep",
                    "infinity",
                ],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
            logger.info("Device sleep prevented (auto-refresh active)")
        except FileNotFoundError:
            logger.warning("systemd-inhibit not found (dev environment)")
            self._proc = None

    def allow_standby(self) -> None:
        proc, self._proc = self._proc, None
        if proc is None:
            return
        proc.terminate()
        try:
            proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            proc.kill()
        logger.info("Device sleep re-enabled (normal behavior)")
