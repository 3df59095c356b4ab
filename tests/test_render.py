from pathlib import Path
from unittest.mock import patch

from PIL import Image

from trmnlscreen.display import FileDisplay, ImageRenderer, MockDisplay
from trmnlscreen.display.protocols import Display, ErrorSimulatingDisplay, Renderer
from trmnlscreen.display.render import calculate_dimensions
from trmnlscreen.settings import RefreshType


def write_image(path: Path, size: tuple[int, int], mode: str = "RGB") -> Path:
    Image.new(mode, size, "white" if mode == "RGB" else 255).save(path, format="PNG")
    return path


def test_protocol_conformance() -> None:
    assert isinstance(MockDisplay(), Display)
    assert isinstance(FileDisplay(Path("frame.png"), 10, 10), Display)
    assert isinstance(ImageRenderer(MockDisplay()), Renderer)


def test_calculate_dimensions_preserves_aspect_ratio() -> None:
    assert calculate_dimensions(400, 300, 800, 600) == (800, 600)
    assert calculate_dimensions(1000, 500, 800, 600) == (800, 400)
    assert calculate_dimensions(300, 600, 800, 600) == (300, 600)


def test_display_image_fits_frame(tmp_path: Path) -> None:
    display = MockDisplay(800, 600)
    renderer = ImageRenderer(display)
    image = write_image(tmp_path / "a.png", (400, 400))

    assert renderer.display_image(image, RefreshType.FULL) is True

    assert display.frames == [{"size": (800, 600), "mode": "L", "refresh_type": RefreshType.FULL}]
    assert renderer.current_image == image


def test_build_frame_centres_on_white(tmp_path: Path) -> None:
    renderer = ImageRenderer(MockDisplay(100, 50))
    image = tmp_path / "black.png"
    Image.new("L", (50, 50), 0).save(image)

    frame = renderer.build_frame(image)

    assert frame.size == (100, 50)
    assert frame.getpixel((0, 25)) == 255
    assert frame.getpixel((50, 25)) == 0


def test_undecodable_image_returns_false(tmp_path: Path) -> None:
    display = MockDisplay()
    renderer = ImageRenderer(display)
    broken = tmp_path / "broken.png"
    broken.write_bytes(b"definitely not a png")

    assert renderer.display_image(broken) is False
    assert display.frames == []
    assert renderer.current_image is None


def test_missing_image_returns_false(tmp_path: Path) -> None:
    assert ImageRenderer(MockDisplay()).display_image(tmp_path / "gone.png") is False


def test_display_failure_returns_false(tmp_path: Path) -> None:
    renderer = ImageRenderer(ErrorSimulatingDisplay(["show_frame"]))
    assert renderer.display_image(write_image(tmp_path / "a.png", (10, 10))) is False


def test_close_clears_only_when_showing(tmp_path: Path) -> None:
    display = MockDisplay()
    renderer = ImageRenderer(display)
    renderer.close()
    assert display.clear_calls == 0

    renderer.display_image(write_image(tmp_path / "a.png", (10, 10)))
    renderer.close()
    assert display.clear_calls == 1
    assert renderer.current_image is None


def test_close_survives_display_error(tmp_path: Path) -> None:
    renderer = ImageRenderer(ErrorSimulatingDisplay(["clear"]))
    renderer.display_image(write_image(tmp_path / "a.png", (10, 10)))
    renderer.close()
    assert renderer.current_image is None


def test_file_display_writes_png(tmp_path: Path) -> None:
    output = tmp_path / "out" / "frame.png"
    display = FileDisplay(output, 120, 80)
    renderer = ImageRenderer(display)

    assert renderer.display_image(write_image(tmp_path / "a.png", (60, 40)), RefreshType.PARTIAL)

    with Image.open(output) as frame:
        assert frame.size == (120, 80)
        assert frame.mode == "L"
    assert display.last_refresh_type is RefreshType.PARTIAL

    renderer.close()
    with Image.open(output) as frame:
        assert frame.getextrema() == (255, 255)
    assert display.last_refresh_type is RefreshType.FULL


def test_broken_png_chunk_returns_false(tmp_path: Path) -> None:
    display = MockDisplay()
    renderer = ImageRenderer(display)
    image = write_image(tmp_path / "a.png", (10, 10))

    with patch(
        "trmnlscreen.display.render.Image.open",
        side_effect=SyntaxError("broken PNG file (chunk b'S_\\xe0\\x08')"),
    ):
        assert renderer.display_image(image) is False

    assert display.frames == []
    assert renderer.current_image is None
