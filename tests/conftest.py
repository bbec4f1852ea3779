"""Shared test fixtures for the imagelink test suite."""

from __future__ import annotations

import asyncio
import io

import pytest
from PIL import Image

from imagelink.config import UploadConfig
from imagelink.editor import MemoryEditor
from imagelink.models import Cancelled, ClipboardFile, Submitted, UserInput


def make_png(size: tuple[int, int] = (4, 3), mode: str = "RGB", color=(200, 30, 30)) -> bytes:
    """Encode a small solid-colour PNG."""
    buf = io.BytesIO()
    Image.new(mode, size, color).save(buf, format="PNG")
    return buf.getvalue()


class RecordingNotifier:
    """Notifier double that keeps every notice."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)


class ScriptedPrompt:
    """Prompt double returning queued answers (default: submit ``Cat``/``cat1``)."""

    def __init__(self, *answers: UserInput) -> None:
        self._answers = list(answers)
        self.asked = 0

    async def ask(self) -> UserInput:
        self.asked += 1
        if self._answers:
            return self._answers.pop(0)
        return Submitted(caption="Cat", slug="cat1")


class FakeUploader:
    """Uploader double.

    Each call blocks until :meth:`finish` or :meth:`fail` is called for its
    key, unless ``auto`` is set, in which case it returns immediately.
    """

    def __init__(self, auto: str | None = None) -> None:
        self.auto = auto
        self.calls: list[dict] = []
        self._futures: dict[str, asyncio.Future[str]] = {}

    async def upload(self, config, data, filename, key, content_type="image/webp") -> str:
        self.calls.append(
            {
                "config": config,
                "data": data,
                "filename": filename,
                "key": key,
                "content_type": content_type,
            }
        )
        if self.auto is not None:
            return self.auto
        future: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        self._futures[key] = future
        return await future

    def finish(self, key: str, reference: str) -> None:
        self._futures[key].set_result(reference)

    def fail(self, key: str, exc: Exception) -> None:
        self._futures[key].set_exception(exc)


class RecordingMetricsHook:
    """Metrics backend that records every call for assertion."""

    def __init__(self) -> None:
        self.increments: list[dict] = []
        self.timings: list[dict] = []
        self.gauges: list[dict] = []

    def increment(self, name, value=1, tags=None) -> None:
        self.increments.append({"name": name, "value": value, "tags": tags})

    def timing(self, name, ms, tags=None) -> None:
        self.timings.append({"name": name, "ms": ms, "tags": tags})

    def gauge(self, name, value, tags=None) -> None:
        self.gauges.append({"name": name, "value": value, "tags": tags})

    def names(self) -> list[str]:
        return [c["name"] for c in self.increments + self.timings + self.gauges]


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def png_file(png_bytes: bytes) -> ClipboardFile:
    return ClipboardFile(name="image.png", mime_type="image/png", data=png_bytes)


@pytest.fixture
def upload_config() -> UploadConfig:
    """Default upload settings."""
    return UploadConfig()


@pytest.fixture
def editor() -> MemoryEditor:
    return MemoryEditor("# Today\n\n")


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def prompt() -> ScriptedPrompt:
    return ScriptedPrompt()


@pytest.fixture
def cancelling_prompt() -> ScriptedPrompt:
    return ScriptedPrompt(Cancelled())


@pytest.fixture
def png_factory():
    """The :func:`make_png` helper, for tests needing other sizes or modes."""
    return make_png


@pytest.fixture
def uploader() -> FakeUploader:
    """Uploader whose calls stay pending until finished by the test."""
    return FakeUploader()


@pytest.fixture
def auto_uploader() -> FakeUploader:
    """Uploader that succeeds immediately with ``https://cdn/x.webp``."""
    return FakeUploader(auto="https://cdn/x.webp")


@pytest.fixture
def prompt_factory():
    """Build a prompt double answering with the given inputs in order."""
    return ScriptedPrompt


@pytest.fixture
def metrics() -> RecordingMetricsHook:
    return RecordingMetricsHook()
