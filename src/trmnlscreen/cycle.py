"""The fetch cycle: one end-to-end fetch, cache, render and reschedule.

A cycle starts from a trigger (timer, user action, wake-up), passes the
debounce gate, waits for the network, then runs ``perform()`` which ends in
exactly one of two terminal states:

- success: image resolved and handed to the renderer, backoff reset, next
  refresh scheduled
- failure: backoff increased, user notified, retry armed if auto-refresh is on

No fetch error escapes a cycle.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Final

from trmnlscreen.api import FetchClient, FetchError, ScreenDescriptor
from trmnlscreen.cache import ImageCache
from trmnlscreen.constants import NETWORK_STABILIZE_DELAY
from trmnlscreen.display.protocols import Renderer
from trmnlscreen.notify import Notifier
from trmnlscreen.scheduling import BackoffPolicy, RefreshScheduler, TaskScheduler
from trmnlscreen.settings import UserSettings
from trmnlscreen.system import DeviceInfo, NetworkManager, build_device_context

logger: Final = logging.getLogger(__name__)

METADATA_FAILED: Final = "metadata fetch failed"
DOWNLOAD_FAILED: Final = "image download failed"


class CycleStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"
    DEBOUNCED = "debounced"


@dataclass(frozen=True)
class CycleResult:
    """Outcome of one fetch cycle."""

    status: CycleStatus
    error: FetchError | None = None
    image_path: Path | None = None
    rendered: bool = False
    retry_delay: int | None = None

    @property
    def ok(self) -> bool:
        return self.status is CycleStatus.SUCCESS


class FetchCycle:
    """Sequences the fetch client, image cache, renderer and scheduler."""

    def __init__(
        self,
        settings: UserSettings,
        client: FetchClient,
        cache: ImageCache,
        scheduler: RefreshScheduler,
        backoff: BackoffPolicy,
        renderer: Renderer,
        network: NetworkManager,
        device: DeviceInfo,
        notifier: Notifier,
        tasks: TaskScheduler,
        persist: Callable[[], None] | None = None,
        stabilize_delay: float = NETWORK_STABILIZE_DELAY,
    ) -> None:
        """Initialize the cycle with its collaborators.

        Args:
            settings: Live settings object (mutated when the server interval applies)
            client: Performs the metadata request
            cache: Resolves descriptors to local image paths
            scheduler: Debounce gate and refresh task slot
            backoff: Retry delay policy
            renderer: Shows the image
            network: Brings the network up and releases it afterwards
            device: Battery and identifier information
            notifier: User-visible notifications
            tasks: Event loop used for the post-connect stabilization delay
            persist: Saves settings after the server interval changed them
            stabilize_delay: Seconds to wait after the network is reported up
        """
        self.settings = settings
        self.client = client
        self.cache = cache
        self.scheduler = scheduler
        self.backoff = backoff
        self.renderer = renderer
        self.network = network
        self.device = device
        self.notifier = notifier
        self.tasks = tasks
        self.persist = persist
        self.stabilize_delay = stabilize_delay

        self.last_result: CycleResult | None = None
        self.listeners: list[Callable[[CycleResult], None]] = []

    def run(self, force: bool = False) -> bool:
        """Start a cycle.

        Args:
            force: Bypass the debounce gate (direct user action)

        Returns:
            False if the debounce gate rejected the trigger
        """
        logger.info("Starting fetch and display cycle")
        if not self.scheduler.check_debounce(force):
            self.last_result = CycleResult(CycleStatus.DEBOUNCED)
            return False

        self.network.run_when_connected(self._on_connected)
        return True

    def _on_connected(self) -> None:
        logger.info(
            "Network connected, waiting %s seconds for it to stabilize", self.stabilize_delay
        )
        self.tasks.schedule_in(self.stabilize_delay, self.perform)

    def perform(self) -> CycleResult:
        """Fetch, resolve and render, then reschedule. Network must be up."""
        device = build_device_context(self.settings, self.device)
        try:
            descriptor = self.client.fetch_metadata(self.settings, device)
        except FetchError as err:
            return self._handle_error(METADATA_FAILED, err)

        self._apply_server_interval(descriptor)

        try:
            image_path = self.cache.resolve(descriptor, self.settings.user_agent)
        except FetchError as err:
            return self._handle_error(DOWNLOAD_FAILED, err)

        return self._finalize_success(image_path)

    def _apply_server_interval(self, descriptor: ScreenDescriptor) -> None:
        if not self.settings.use_server_refresh_rate or descriptor.refresh_rate is None:
            return
        if descriptor.refresh_rate == self.settings.refresh_interval:
            return

        logger.info("Using server refresh rate: %d seconds", descriptor.refresh_rate)
        self.settings.refresh_interval = descriptor.refresh_rate
        self._save()

    def _save(self) -> None:
        # The schedule must still be re-armed when the state file cannot be written
        if self.persist is None:
            return
        try:
            self.persist()
        except OSError as exc:
            logger.error("Could not save settings: %s", exc)

    def _finalize_success(self, image_path: Path) -> CycleResult:
        # A render failure is reported but still counts as a successful fetch
        try:
            rendered = self.renderer.display_image(image_path, self.settings.refresh_type)
        except Exception as exc:
            logger.error("Renderer raised for %s: %s", image_path, exc)
            rendered = False
        if rendered:
            logger.info("Fetch and display completed successfully")
            self.notifier.success("Screen updated successfully")
        else:
            logger.error("Fetched %s but could not render it", image_path)
            self.notifier.error("Failed to render image", str(image_path))

        self.network.after_wifi_action()
        self.backoff.reset()
        self.scheduler.schedule_next()
        self.scheduler.validate_and_repair()

        return self._complete(
            CycleResult(CycleStatus.SUCCESS, image_path=image_path, rendered=rendered)
        )

    def _handle_error(self, context: str, err: FetchError) -> CycleResult:
        self.network.after_wifi_action()
        delay = self.backoff.increment()
        logger.error("%s: %s (attempt %d)", context, err, self.backoff.count)

        armed = self.scheduler.schedule_retry(delay)
        if armed:
            message = f"Failed: {context}. Will retry in {delay} seconds."
        else:
            message = f"Failed: {context}."
        self.notifier.error(message, f"{err.guidance}\n{err.message}")

        return self._complete(
            CycleResult(CycleStatus.FAILED, error=err, retry_delay=delay if armed else None)
        )

    def _complete(self, result: CycleResult) -> CycleResult:
        self.last_result = result
        for listener in self.listeners:
            listener(result)
        return result
