# filepath: src/trmnlscreen/controller.py
"""Core controller for the TRMNL screen fetcher."""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Callable
from typing import Any, Final

from typing_extensions import TypedDict

from trmnlscreen.api import FetchClient
from trmnlscreen.cache import ImageCache
from trmnlscreen.cycle import CycleResult, FetchCycle
from trmnlscreen.display import FileDisplay, ImageRenderer, Renderer
from trmnlscreen.notify import ConsoleSink, NotificationSink, Notifier
from trmnlscreen.scheduling import (
    AsyncioTaskScheduler,
    BackoffPolicy,
    RefreshScheduler,
    TaskScheduler,
)
from trmnlscreen.settings import AppPaths, RefreshType, SettingsStore, UserSettings
from trmnlscreen.settings.store import load_api_key_file
from trmnlscreen.system import (
    AlwaysOnlineNetwork,
    DeviceInfo,
    NetworkManager,
    NullStandby,
    StandbyController,
    SysfsDeviceInfo,
)

logger: Final = logging.getLogger(__name__)

# Fields the configuration dialog may change
CONFIGURABLE_FIELDS: Final = (
    "api_key",
    "base_url",
    "refresh_interval",
    "mac_header_name",
    "mac_address",
)


class StatusReport(TypedDict):
    """Snapshot of the controller shown by `trmnl-screen status`."""

    auto_refresh: str
    refresh_interval: int
    use_server_refresh_rate: bool
    refresh_type: str
    retry_count: int
    next_retry_delay: int
    cached_image: str | None
    last_result: str | None


def configure_logging(debug: bool = False) -> None:
    """Configure root logging once for the application."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


class TrmnlDisplay:
    """Main controller owning the whole fetch/cache/schedule context.

    This class replaces any global plugin state with one owned object:
    - Loading the persisted settings and scheduling intent
    - Wiring the fetch client, image cache, renderer and scheduler
    - Exposing the menu entry points (fetch now, toggles, configuration)
    - Handling lifecycle events (open, suspend, resume, close)

    All collaborators can be injected, which is how the tests drive it.
    """

    def __init__(
        self,
        store: SettingsStore,
        tasks: TaskScheduler,
        paths: AppPaths | None = None,
        client: FetchClient | None = None,
        renderer: Renderer | None = None,
        network: NetworkManager | None = None,
        device: DeviceInfo | None = None,
        standby: StandbyController | None = None,
        sink: NotificationSink | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            store: Where settings and intent are persisted
            tasks: Event-loop capability for timers
            paths: File locations (default: derived from the state file)
            client: Optional custom fetch client
            renderer: Optional custom renderer
            network: Optional network manager
            device: Optional device information provider
            standby: Optional standby controller
            sink: Optional notification sink
        """
        self.store = store
        self.tasks = tasks
        self.paths = paths or AppPaths.for_state_file(store.path)

        self.state = store.load()
        self._load_api_key_file()

        self.backoff = BackoffPolicy(self.settings.retry_cap)
        self.client = client or FetchClient()
        self.notifier = Notifier(sink or ConsoleSink(), lambda: self.settings.show_notifications)

        self.cache = ImageCache(
            self.client,
            self.paths.image_dir,
            on_download=lambda name: self.notifier.progress("Downloading new screen...", name),
        )
        self.cache.restore(self.state.last_image_filename)

        self.renderer = renderer or ImageRenderer(
            FileDisplay(
                self.paths.frame_file,
                self.settings.display_width,
                self.settings.display_height,
            )
        )
        self.network = network or AlwaysOnlineNetwork()
        self.device = device or SysfsDeviceInfo()

        self.scheduler = RefreshScheduler(
            tasks,
            interval=lambda: self.settings.refresh_interval,
            standby=standby or NullStandby(),
            persist=self._persist_intent,
        )
        self.cycle = FetchCycle(
            settings=self.settings,
            client=self.client,
            cache=self.cache,
            scheduler=self.scheduler,
            backoff=self.backoff,
            renderer=self.renderer,
            network=self.network,
            device=self.device,
            notifier=self.notifier,
            tasks=tasks,
            persist=self.flush_settings,
        )
        self.cycle.listeners.append(self._remember_cached_image)
        self.scheduler.bind(self.cycle.run)

    @property
    def settings(self) -> UserSettings:
        return self.state.settings

    # ── lifecycle ───────────────────────────────────────────────────────────
    def open(self) -> None:
        """Restore auto-refresh if it was enabled when the app last ran."""
        if self.state.auto_refresh_enabled:
            self.start_auto_refresh()

    def close(self, purge_cache: bool = False) -> None:
        """Shut down: cancel timers, clear the screen and flush state.

        The auto-refresh intent is kept so the next start resumes it.

        Args:
            purge_cache: Also delete the cached image
        """
        logger.debug("Controller closing")
        self.scheduler.stop(persist=False)
        self.renderer.close()
        if purge_cache:
            self.cache.cleanup()
            self.state.last_image_filename = None
        self.flush_settings()

    def on_suspend(self) -> None:
        """Device is going to sleep: no timers while asleep, save state."""
        self.scheduler.suspend()
        self.flush_settings()

    def on_resume(self) -> None:
        """Device woke up: fetch fresh data unless WiFi restores by itself."""
        self.scheduler.resume(wifi_auto_restore=self.network.wifi_restores_on_resume())

    def flush_settings(self) -> None:
        self.store.flush(self.state)

    def status(self) -> StatusReport:
        result = self.cycle.last_result
        return StatusReport(
            auto_refresh=self.scheduler.status.value,
            refresh_interval=self.settings.refresh_interval,
            use_server_refresh_rate=self.settings.use_server_refresh_rate,
            refresh_type=self.settings.refresh_type.value,
            retry_count=self.backoff.count,
            next_retry_delay=self.backoff.current_delay(),
            cached_image=self.cache.last_image_filename,
            last_result=result.status.value if result else None,
        )

    def reload(self) -> None:
        """Re-read the state file and apply changes made by other processes."""
        fresh = self.store.load()
        self._apply_settings(fresh.settings.model_dump())
        if fresh.auto_refresh_enabled != self.scheduler.enabled:
            self.toggle_auto_refresh()
        logger.info("Settings reloaded from %s", self.store.path)

    # ── menu entry points ──────────────────────────────────────────────────
    def fetch_now(self) -> bool:
        """Fetch immediately, bypassing the debounce gate."""
        return self.cycle.run(force=True)

    def start_auto_refresh(self) -> bool:
        started = self.scheduler.start()
        if started:
            self.notifier.progress("Starting auto-refresh...", "Fetching first screen")
        return started

    def stop_auto_refresh(self) -> bool:
        return self.scheduler.stop()

    def toggle_auto_refresh(self) -> str:
        if self.scheduler.enabled:
            self.stop_auto_refresh()
            return "Auto-refresh disabled."
        self.start_auto_refresh()
        return "Auto-refresh enabled."

    def toggle_server_refresh_rate(self) -> str:
        self.settings.use_server_refresh_rate = not self.settings.use_server_refresh_rate
        self.flush_settings()
        if self.settings.use_server_refresh_rate:
            return "Will use server's recommended refresh interval"
        return "Will use your manual refresh interval"

    def toggle_notifications(self) -> str:
        self.settings.show_notifications = not self.settings.show_notifications
        self.flush_settings()
        if self.settings.show_notifications:
            return "Status notifications enabled (errors always shown)"
        return "Status notifications hidden (errors still shown)"

    def set_refresh_type(self, refresh_type: RefreshType | str) -> RefreshType:
        self.settings.refresh_type = RefreshType(refresh_type)
        self.flush_settings()
        return self.settings.refresh_type

    def configure(self, **changes: Any) -> UserSettings:
        """Apply values from the configuration dialog and save them.

        Args:
            **changes: Any of api_key, base_url, refresh_interval,
                mac_header_name, mac_address

        Returns:
            The updated settings

        Raises:
            ValueError: For unknown fields
            pydantic.ValidationError: For invalid values
        """
        unknown = set(changes) - set(CONFIGURABLE_FIELDS)
        if unknown:
            raise ValueError(f"Not configurable: {', '.join(sorted(unknown))}")

        self._apply_settings({**self.settings.model_dump(), **changes})
        self.flush_settings()
        self.notifier.info("TRMNL settings saved.")
        return self.settings

    # ── internals ───────────────────────────────────────────────────────────
    def _apply_settings(self, data: dict[str, Any]) -> None:
        # Validate everything first, then update the shared object in place
        validated = UserSettings.model_validate(data)
        for name in UserSettings.model_fields:
            value = getattr(validated, name)
            if getattr(self.settings, name) != value:
                setattr(self.settings, name, value)

    def _load_api_key_file(self) -> None:
        api_key = load_api_key_file(self.paths.api_key_file)
        if api_key and api_key != self.settings.api_key:
            self.settings.api_key = api_key
            self.flush_settings()
            logger.info("API key auto-configured from file")

    def _persist_intent(self, enabled: bool) -> None:
        self.state.auto_refresh_enabled = enabled
        self.flush_settings()

    def _remember_cached_image(self, result: CycleResult) -> None:
        if self.cache.last_image_filename != self.state.last_image_filename:
            self.state.last_image_filename = self.cache.last_image_filename
            try:
                self.flush_settings()
            except OSError as exc:
                logger.error("Could not record cached image: %s", exc)


async def serve(
    build: Callable[[TaskScheduler], TrmnlDisplay],
    stop: asyncio.Event | None = None,
    purge_cache: bool = False,
) -> TrmnlDisplay:
    """Run the controller on the current asyncio loop until stopped.

    Signals: SIGTERM/SIGINT stop, SIGUSR1 suspend, SIGUSR2 resume,
    SIGHUP reload settings.

    Args:
        build: Creates the controller for the loop's task scheduler
        stop: Event ending the service (default: a fresh one set by signals)
        purge_cache: Delete the cached image on shutdown

    Returns:
        The closed controller
    """
    loop = asyncio.get_running_loop()
    stop = stop or asyncio.Event()
    display = build(AsyncioTaskScheduler(loop))

    handlers: dict[signal.Signals, Callable[[], object]] = {
        signal.SIGTERM: stop.set,
        signal.SIGINT: stop.set,
        signal.SIGUSR1: display.on_suspend,
        signal.SIGUSR2: display.on_resume,
        signal.SIGHUP: display.reload,
    }
    installed: list[signal.Signals] = []
    for sig, handler in handlers.items():
        try:
            loop.add_signal_handler(sig, handler)
            installed.append(sig)
        except (NotImplementedError, RuntimeError, ValueError):
            logger.debug("Signal %s not supported here", sig.name)

    display.open()
    try:
        await stop.wait()
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
        display.close(purge_cache=purge_cache)
    return display

