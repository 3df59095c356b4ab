import io
import json
from pathlib import Path
from unittest.mock import Mock

import pytest
from PIL import Image

from trmnlscreen.notify import MemorySink, Notifier
from trmnlscreen.scheduling import ManualTaskScheduler
from trmnlscreen.settings import UserSettings


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep XDG locations and the state env var out of the real home."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("TRMNL_SCREEN_STATE", raising=False)


@pytest.fixture
def settings() -> UserSettings:
    return UserSettings(
        api_key="test-api-key",
        base_url="https://trmnl.example",
        refresh_interval=1800,
        display_width=800,
        display_height=600,
    )


@pytest.fixture
def tasks() -> ManualTaskScheduler:
    return ManualTaskScheduler()


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def notifier(sink: MemorySink, settings: UserSettings) -> Notifier:
    return Notifier(sink, lambda: settings.show_notifications)


def png_bytes(width: int = 40, height: int = 30, color: int = 0) -> bytes:
    buf = io.BytesIO()
    Image.new("L", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def json_response(body: object, status_code: int = 200) -> Mock:
    """Mock requests.Response carrying a JSON body."""
    resp = Mock()
    resp.status_code = status_code
    resp.text = json.dumps(body)
    resp.json.return_value = body
    return resp


def image_response(content: bytes, status_code: int = 200) -> Mock:
    """Mock streamed requests.Response carrying image bytes."""
    resp = Mock()
    resp.status_code = status_code
    resp.iter_content.return_value = [content[:10], content[10:]]
    return resp
