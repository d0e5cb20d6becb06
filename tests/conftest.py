"""Shared pytest fixtures for chibiforge tests."""

import io
import shutil
import tempfile
from pathlib import Path
from types import SimpleNamespace
from typing import Generator

import numpy as np
import pytest
from PIL import Image

from chibiforge.core.config import ChibiforgeConfig
from chibiforge.core.policy import PacingPolicy


class FakeAPIError(Exception):
    """Stand-in for ``google.genai.errors.APIError`` (exposes ``code``)."""

    def __init__(self, code: int, message: str = "error") -> None:
        super().__init__(f"{code} {message}")
        self.code = code


class FakeModels:
    """Scripted ``client.models`` replacement.

    ``script`` maps a model name to a list of outcomes consumed in order;
    the last outcome repeats once the list is exhausted.  An outcome that is
    an exception instance is raised, anything else is returned.
    """

    def __init__(self, script: dict) -> None:
        self.script = {model: list(outcomes) for model, outcomes in script.items()}
        self.calls: list[dict] = []

    def generate_content(self, model, contents, config=None):
        self.calls.append({"model": model, "contents": contents, "config": config})
        outcomes = self.script.get(model)
        if not outcomes:
            raise FakeAPIError(404, f"model {model} not found")
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def models_called(self) -> list[str]:
        return [call["model"] for call in self.calls]


class FakeClient:
    """Minimal ``google.genai.Client`` surface."""

    def __init__(self, script: dict) -> None:
        self.models = FakeModels(script)


def text_response(text: str) -> SimpleNamespace:
    return SimpleNamespace(text=text)


def image_response(*payloads: bytes, text: str = "") -> SimpleNamespace:
    parts = [SimpleNamespace(text=text, inline_data=None)] if text else []
    parts += [
        SimpleNamespace(text=None, inline_data=SimpleNamespace(data=data, mime_type="image/png"))
        for data in payloads
    ]
    return SimpleNamespace(
        text=None,
        parts=None,
        candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))],
    )


def png_bytes(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def white_canvas_with_block(
    size: tuple[int, int],
    box: tuple[int, int, int, int],
    color: tuple[int, int, int] = (200, 30, 30),
) -> Image.Image:
    """White RGB image with a solid rectangle ``box`` = (left, top, right, bottom)."""
    image = Image.new("RGB", size, (255, 255, 255))
    image.paste(color, box)
    return image


def noisy_character_png(size: tuple[int, int] = (240, 320), seed: int = 0) -> bytes:
    """A white canvas with a random-coloured subject; comfortably above 5 KB."""
    width, height = size
    rng = np.random.default_rng(seed)
    pixels = np.full((height, width, 3), 255, dtype=np.uint8)
    pixels[height // 8 : height - height // 8, width // 4 : width - width // 4] = rng.integers(
        0, 150, size=(height - 2 * (height // 8), width - 2 * (width // 4), 3), dtype=np.uint8
    )
    return png_bytes(Image.fromarray(pixels))


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> ChibiforgeConfig:
    """Configuration pointing every path into the temporary directory."""
    media_root = temp_dir / "public"
    (media_root / "uploads").mkdir(parents=True)

    return ChibiforgeConfig(
        _env_file=None,
        gemini_api_key="test-key",
        media_root=str(media_root),
        uploads_dir=str(media_root / "uploads"),
        records_db=str(temp_dir / "db.json"),
    )


@pytest.fixture
def recorded_sleeps() -> list[float]:
    return []


@pytest.fixture
def policy(recorded_sleeps: list[float]) -> PacingPolicy:
    """Default delays, but sleeps are recorded instead of waited."""
    return PacingPolicy(sleep=recorded_sleeps.append)


@pytest.fixture
def photo_factory(test_config: ChibiforgeConfig):
    """Write a small JPEG under the media root and return its reference."""

    def _make(name: str, color: tuple[int, int, int] = (120, 90, 60)) -> str:
        path = test_config.media_root / "uploads" / name
        Image.new("RGB", (32, 32), color).save(path, format="JPEG")
        return f"/uploads/{name}"

    return _make


@pytest.fixture
def unreadable_photos(monkeypatch: pytest.MonkeyPatch) -> set[str]:
    """File names whose ``Path.read_bytes`` raises ``PermissionError``.

    Add a name to the returned set to make that file exist but fail to read.
    """
    blocked: set[str] = set()
    original_read_bytes = Path.read_bytes

    def read_bytes(self: Path) -> bytes:
        if self.name in blocked:
            raise PermissionError(13, "Permission denied", str(self))
        return original_read_bytes(self)

    monkeypatch.setattr(Path, "read_bytes", read_bytes)
    return blocked
