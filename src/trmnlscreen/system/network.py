"""Network connectivity seam used by the fetch cycle."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Final, Protocol, runtime_checkable

logger: Final = logging.getLogger(__name__)


@runtime_checkable
class NetworkManager(Protocol):
    """Protocol for bringing the network up around a fetch."""

    def run_when_connected(self, callback: Callable[[], object]) -> None:
        """Run ``callback`` once the network is connected.

        Implementations may turn WiFi on and call back later.
        """
        ...

    def after_wifi_action(self) -> None:
        """Release whatever ``run_when_connected`` acquired."""
        ...

    def wifi_restores_on_resume(self) -> bool:
        """Return True if WiFi comes back by itself after wake-up."""
        ...


class AlwaysOnlineNetwork:
    """Network manager for hosts that are permanently connected."""

    def __init__(self, restores_on_resume: bool = False) -> None:
        self.restores_on_resume = restores_on_resume

    def run_when_connected(self, callback: Callable[[], object]) -> None:
        callback()

    def after_wifi_action(self) -> None:
        logger.debug("Network released")

    def wifi_restores_on_resume(self) -> bool:
        return self.restores_on_resume
