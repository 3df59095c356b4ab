import asyncio
from pathlib import Path
from unittest.mock import Mock, patch

import pytest
from pydantic import ValidationError

from conftest import image_response, json_response, png_bytes
from trmnlscreen.controller import TrmnlDisplay, serve
from trmnlscreen.display import MockRenderer
from trmnlscreen.notify import MemorySink, NotificationKind
from trmnlscreen.scheduling import ManualTaskScheduler, ScheduleStatus, TaskScheduler
from trmnlscreen.settings import (
    AppPaths,
    PersistedState,
    RefreshType,
    SettingsStore,
    UserSettings,
)
from trmnlscreen.system import AlwaysOnlineNetwork


class FakeDevice:
    def battery_percentage(self) -> int | None:
        return None

    def detect_device_identifier(self) -> str | None:
        return None


@pytest.fixture
def paths(tmp_path: Path) -> AppPaths:
    return AppPaths.from_base_dir(tmp_path / "trmnl")


@pytest.fixture
def store(paths: AppPaths) -> SettingsStore:
    return SettingsStore(paths.state_file)


@pytest.fixture
def renderer() -> MockRenderer:
    return MockRenderer()


@pytest.fixture
def standby() -> Mock:
    return Mock()


@pytest.fixture
def make_display(
    store: SettingsStore,
    paths: AppPaths,
    renderer: MockRenderer,
    standby: Mock,
    sink: MemorySink,
):
    def factory(tasks: TaskScheduler, **kwargs) -> TrmnlDisplay:
        options = dict(
            paths=paths,
            renderer=renderer,
            network=AlwaysOnlineNetwork(),
            device=FakeDevice(),
            standby=standby,
            sink=sink,
        )
        options.update(kwargs)
        return TrmnlDisplay(store, tasks, **options)

    return factory


def seed(store: SettingsStore, auto_refresh: bool = False, **settings) -> None:
    settings.setdefault("api_key", "test-api-key")
    store.flush(
        PersistedState(settings=UserSettings(**settings), auto_refresh_enabled=auto_refresh)
    )


def test_open_restores_auto_refresh(
    make_display, store: SettingsStore, tasks: ManualTaskScheduler, standby: Mock
) -> None:
    seed(store, auto_refresh=True)
    display = make_display(tasks)

    with patch("trmnlscreen.api.client.requests.get") as mock_get:
        mock_get.side_effect = [
            json_response({"image_url": "https://cdn/a.png"}),
            image_response(png_bytes()),
        ]
        display.open()
        tasks.advance(2)

    assert display.scheduler.status is ScheduleStatus.ENABLED_SCHEDULED
    standby.prevent_standby.assert_called_once()
    assert [task.when for task in tasks.pending] == [2 + 1800]


def test_open_without_intent_stays_idle(
    make_display, store: SettingsStore, tasks: ManualTaskScheduler
) -> None:
    seed(store)
    display = make_display(tasks)
    display.open()
    assert display.scheduler.status is ScheduleStatus.DISABLED
    assert tasks.pending == []


def test_api_key_file_is_loaded_and_saved(
    make_display, store: SettingsStore, paths: AppPaths, tasks: ManualTaskScheduler
) -> None:
    paths.api_key_file.parent.mkdir(parents=True)
    paths.api_key_file.write_text("from-file\n", encoding="utf-8")

    display = make_display(tasks)

    assert display.settings.api_key == "from-file"
    assert store.load().settings.api_key == "from-file"


def test_fetch_now_bypasses_debounce(
    make_display, store: SettingsStore, tasks: ManualTaskScheduler, renderer: MockRenderer
) -> None:
    seed(store)
    display = make_display(tasks)

    with patch("trmnlscreen.api.client.requests.get") as mock_get:
        mock_get.side_effect = [
            json_response({"image_url": "https://cdn/a.png", "filename": "a.png"}),
            image_response(png_bytes()),
            json_response({"image_url": "https://cdn/a.png", "filename": "a.png"}),
        ]
        assert display.fetch_now() is True
        tasks.advance(2)
        assert display.fetch_now() is True
        tasks.advance(2)

    assert len(renderer.render_calls) == 2
    assert store.load().last_image_filename == "a.png"


def test_cached_image_survives_restart(
    make_display, store: SettingsStore, paths: AppPaths, tasks: ManualTaskScheduler
) -> None:
    seed(store)
    display = make_display(tasks)
    with patch("trmnlscreen.api.client.requests.get") as mock_get:
        mock_get.side_effect = [
            json_response({"image_url": "https://cdn/a.png", "filename": "a.png"}),
            image_response(png_bytes()),
        ]
        display.fetch_now()
        tasks.advance(2)
    display.close()

    restarted = make_display(ManualTaskScheduler())
    assert restarted.cache.last_image_path == paths.image_dir / "a.png"

    with patch("trmnlscreen.api.client.requests.get") as mock_get:
        mock_get.side_effect = [
            json_response({"image_url": "https://cdn/b.png", "filename": "b.png"}),
            image_response(png_bytes()),
        ]
        restarted.fetch_now()
        restarted.tasks.advance(2)

    assert sorted(p.name for p in paths.image_dir.iterdir()) == ["b.png"]


def test_toggle_auto_refresh(
    make_display, store: SettingsStore, tasks: ManualTaskScheduler, sink: MemorySink
) -> None:
    seed(store)
    display = make_display(tasks)

    with patch("trmnlscreen.api.client.requests.get", side_effect=OSError("never reached")):
        assert display.toggle_auto_refresh() == "Auto-refresh enabled."
    assert store.load().auto_refresh_enabled is True
    assert sink.of_kind(NotificationKind.PROGRESS)[0].message == "Starting auto-refresh..."

    assert display.toggle_auto_refresh() == "Auto-refresh disabled."
    assert store.load().auto_refresh_enabled is False


def test_close_keeps_intent_and_clears_screen(
    make_display, store: SettingsStore, tasks: ManualTaskScheduler, renderer: MockRenderer
) -> None:
    seed(store)
    display = make_display(tasks)
    display.start_auto_refresh()

    display.close()

    assert display.scheduler.enabled is False
    assert renderer.close_calls == 1
    assert store.load().auto_refresh_enabled is True


def test_close_with_purge_removes_cached_image(
    make_display, store: SettingsStore, paths: AppPaths, tasks: ManualTaskScheduler
) -> None:
    seed(store)
    display = make_display(tasks)
    with patch("trmnlscreen.api.client.requests.get") as mock_get:
        mock_get.side_effect = [
            json_response({"image_url": "https://cdn/a.png", "filename": "a.png"}),
            image_response(png_bytes()),
        ]
        display.fetch_now()
        tasks.advance(2)

    display.close(purge_cache=True)

    assert not (paths.image_dir / "a.png").exists()
    assert store.load().last_image_filename is None


def test_preference_toggles_persist(
    make_display, store: SettingsStore, tasks: ManualTaskScheduler
) -> None:
    seed(store)
    display = make_display(tasks)

    assert display.toggle_server_refresh_rate() == "Will use server's recommended refresh interval"
    assert display.toggle_notifications() == "Status notifications hidden (errors still shown)"
    assert display.set_refresh_type("flashui") is RefreshType.FLASHUI

    saved = store.load().settings
    assert saved.use_server_refresh_rate is True
    assert saved.show_notifications is False
    assert saved.refresh_type is RefreshType.FLASHUI


def test_configure_updates_live_settings(
    make_display, store: SettingsStore, tasks: ManualTaskScheduler, sink: MemorySink
) -> None:
    seed(store)
    display = make_display(tasks)
    live = display.cycle.settings

    display.configure(base_url="https://byos.example/", refresh_interval=600, mac_header_name="")

    assert live is display.settings
    assert live.base_url == "https://byos.example"
    assert live.refresh_interval == 600
    assert live.device_id_header == "ID"
    assert store.load().settings.refresh_interval == 600
    assert sink.of_kind(NotificationKind.INFO)[-1].message == "TRMNL settings saved."


def test_configure_rejects_invalid_values(
    make_display, store: SettingsStore, tasks: ManualTaskScheduler
) -> None:
    seed(store)
    display = make_display(tasks)

    with pytest.raises(ValidationError):
        display.configure(refresh_interval=0, base_url="https://other.example")
    assert display.settings.base_url == "https://trmnl.app"

    with pytest.raises(ValueError, match="Not configurable"):
        display.configure(show_notifications=False)


def test_suspend_and_resume(
    make_display, store: SettingsStore, tasks: ManualTaskScheduler
) -> None:
    seed(store, auto_refresh=True)
    display = make_display(tasks)
    with patch("trmnlscreen.api.client.requests.get") as mock_get:
        mock_get.side_effect = [
            json_response({"image_url": "https://cdn/a.png"}),
            image_response(png_bytes()),
            json_response({"image_url": "https://cdn/a.png"}),
        ]
        display.open()
        tasks.advance(2)

        display.on_suspend()
        assert tasks.pending == []
        assert store.load().auto_refresh_enabled is True

        tasks.advance(7200)
        display.on_resume()
        tasks.advance(2)

    assert mock_get.call_count == 3
    assert display.scheduler.status is ScheduleStatus.ENABLED_SCHEDULED


def test_resume_with_wifi_auto_restore_does_not_fetch(
    make_display, store: SettingsStore, tasks: ManualTaskScheduler
) -> None:
    seed(store, auto_refresh=True)
    display = make_display(tasks, network=AlwaysOnlineNetwork(restores_on_resume=True))
    with patch("trmnlscreen.api.client.requests.get") as mock_get:
        mock_get.side_effect = [
            json_response({"image_url": "https://cdn/a.png"}),
            image_response(png_bytes()),
        ]
        display.open()
        tasks.advance(2)
        display.on_suspend()
        display.on_resume()

    assert mock_get.call_count == 2
    assert display.scheduler.status is ScheduleStatus.ENABLED_SCHEDULED


def test_reload_applies_external_changes(
    make_display, store: SettingsStore, tasks: ManualTaskScheduler
) -> None:
    seed(store)
    display = make_display(tasks)

    seed(store, refresh_interval=120, refresh_type="partial")
    display.reload()

    assert display.settings.refresh_interval == 120
    assert display.settings.refresh_type is RefreshType.PARTIAL


def test_status_report(make_display, store: SettingsStore, tasks: ManualTaskScheduler) -> None:
    seed(store)
    display = make_display(tasks)
    report = display.status()
    assert report["auto_refresh"] == "disabled"
    assert report["retry_count"] == 0
    assert report["next_retry_delay"] == 60
    assert report["cached_image"] is None
    assert report["last_result"] is None


def test_serve_opens_and_closes(make_display, store: SettingsStore, renderer: MockRenderer) -> None:
    seed(store)
    built: list[TrmnlDisplay] = []

    def build(tasks: TaskScheduler) -> TrmnlDisplay:
        display = make_display(tasks)
        built.append(display)
        return display

    async def main() -> TrmnlDisplay:
        stop = asyncio.Event()
        stop.set()
        return await serve(build, stop)

    display = asyncio.run(main())

    assert built == [display]
    assert display.scheduler.enabled is False
    assert store.path.exists()


def test_failed_state_write_keeps_auto_refresh_armed(
    make_display, store: SettingsStore, tasks: ManualTaskScheduler
) -> None:
    seed(store)
    display = make_display(tasks)
    with (
        patch.object(store, "flush", side_effect=OSError("Read-only file system")),
        patch("trmnlscreen.api.client.requests.get") as mock_get,
    ):
        mock_get.side_effect = [
            json_response({"image_url": "https://cdn/a.png", "filename": "a.png"}),
            image_response(png_bytes()),
        ]
        display.scheduler.enabled = True
        display.fetch_now()
        tasks.advance(2)

    assert display.cycle.last_result is not None and display.cycle.last_result.ok
    assert display.scheduler.status is ScheduleStatus.ENABLED_SCHEDULED
    assert len(tasks.pending) == 1


def test_serve_purges_cached_image(
    make_display, store: SettingsStore, paths: AppPaths
) -> None:
    paths.image_dir.mkdir(parents=True)
    (paths.image_dir / "a.png").write_bytes(png_bytes())
    store.flush(
        PersistedState(
            settings=UserSettings(api_key="test-api-key"), last_image_filename="a.png"
        )
    )

    async def main() -> TrmnlDisplay:
        stop = asyncio.Event()
        stop.set()
        return await serve(make_display, stop, purge_cache=True)

    display = asyncio.run(main())

    assert display.cache.last_image_path is None
    assert not (paths.image_dir / "a.png").exists()
    assert store.load().last_image_filename is None
