"""Tests for the paste orchestrator in imagelink/paste.py.

Covers:
- PasteStateMachine transitions
- derive_document_key
- PasteHandler: claiming events, transcode and prompt outcomes,
  background uploads, failure notices, concurrent sessions
"""

from __future__ import annotations

import asyncio
import io
import json
import logging

import httpx
import pytest
from PIL import Image

from imagelink.config import ImageLinkConfig, UploadConfig
from imagelink.errors import (
    ImageLinkRequestBuildError,
    ImageLinkTransportError,
    ImageLinkUploadError,
)
from imagelink.host import ClipboardEvent
from imagelink.models import ClipboardFile, PasteSession, PasteState, Submitted
from imagelink.observability import StructuredFormatter
from imagelink.paste import PasteHandler, PasteStateMachine, derive_document_key
from imagelink.upload import UploadClient

DOC = "notes/today.md"


async def settle() -> None:
    """Let scheduled upload tasks run up to their first suspension."""
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def make_handler(upload_config, notifier):
    def factory(uploader, prompt, config=None, settings=None) -> PasteHandler:
        return PasteHandler(
            settings=settings or (lambda: upload_config),
            uploader=uploader,
            prompt=prompt,
            notifier=notifier,
            config=config,
        )

    return factory


@pytest.fixture
def paste_log():
    """Capture imagelink.paste records as JSON lines."""
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    logger = logging.getLogger("imagelink.paste")
    logger.addHandler(handler)
    yield stream
    logger.removeHandler(handler)


# =========================================================================
# State machine
# =========================================================================


class TestPasteStateMachine:

    def test_happy_path(self):
        machine = PasteStateMachine(PasteSession())
        for state in (
            PasteState.VALIDATING,
            PasteState.TRANSCODING,
            PasteState.AWAITING_INPUT,
            PasteState.UPLOADING,
            PasteState.RESOLVED,
        ):
            machine.transition(state)
        assert machine.state == PasteState.RESOLVED

    @pytest.mark.parametrize(
        ("path", "bad"),
        [
            ((), PasteState.UPLOADING),
            ((PasteState.VALIDATING,), PasteState.UPLOADING),
            ((PasteState.VALIDATING, PasteState.TRANSCODING), PasteState.UPLOADING),
            (
                (PasteState.VALIDATING, PasteState.TRANSCODING, PasteState.AWAITING_INPUT),
                PasteState.FAILED,
            ),
        ],
    )
    def test_invalid_transition_rejected(self, path, bad):
        machine = PasteStateMachine(PasteSession())
        for state in path:
            machine.transition(state)
        with pytest.raises(ValueError, match="Invalid paste state transition"):
            machine.transition(bad)

    @pytest.mark.parametrize("terminal", [PasteState.RESOLVED, PasteState.FAILED, PasteState.ABORTED])
    def test_terminal_states(self, terminal):
        machine = PasteStateMachine(PasteSession(state=terminal))
        with pytest.raises(ValueError):
            machine.transition(PasteState.IDLE)


# =========================================================================
# Content key
# =========================================================================


class TestDeriveDocumentKey:

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("notes/today.md", "notes/today/cat1.webp"),
            ("today.md", "today/cat1.webp"),
            ("docs/page.mdx", "docs/page/cat1.webp"),
            ("notes/today.txt", "notes/today.txt/cat1.webp"),
            ("notes/readme.md.bak", "notes/readme.md.bak/cat1.webp"),
            (None, "cat1.webp"),
            ("", "cat1.webp"),
        ],
    )
    def test_key(self, path, expected):
        assert derive_document_key(path, "cat1", "webp") == expected


# =========================================================================
# Claiming the event
# =========================================================================


class TestBegin:

    def test_image_event_claimed(self, make_handler, auto_uploader, prompt, png_file):
        event = ClipboardEvent(files=[png_file])
        session = make_handler(auto_uploader, prompt).begin(event)
        assert session is not None
        assert session.state == PasteState.VALIDATING
        assert session.source is png_file
        assert event.default_prevented is True

    def test_already_handled_event_ignored(self, make_handler, auto_uploader, prompt, png_file):
        event = ClipboardEvent(files=[png_file], default_prevented=True)
        assert make_handler(auto_uploader, prompt).begin(event) is None

    def test_non_image_event_left_alone(self, make_handler, auto_uploader, prompt):
        text = ClipboardFile(name="a.txt", mime_type="text/plain", data=b"hi")
        event = ClipboardEvent(files=[text])
        assert make_handler(auto_uploader, prompt).begin(event) is None
        assert event.default_prevented is False

    def test_empty_clipboard_left_alone(self, make_handler, auto_uploader, prompt):
        event = ClipboardEvent()
        assert make_handler(auto_uploader, prompt).begin(event) is None
        assert event.default_prevented is False


# =========================================================================
# Full paste sessions
# =========================================================================


class TestHandlePaste:

    async def test_end_to_end(self, make_handler, auto_uploader, prompt, editor, notifier, png_file):
        handler = make_handler(auto_uploader, prompt)
        session = await handler.handle_paste(ClipboardEvent(files=[png_file]), editor, DOC)
        await handler.wait_idle()

        assert session.state == PasteState.RESOLVED
        assert session.document_key == "notes/today/cat1.webp"
        assert session.reference == "https://cdn/x.webp"
        assert editor.get_value() == "# Today\n\n![Cat](https://cdn/x.webp)\n\n"
        assert notifier.messages == []

        call = auto_uploader.calls[0]
        assert call["key"] == "notes/today/cat1.webp"
        assert call["filename"] == "image.webp"
        assert call["content_type"] == "image/webp"
        assert call["data"][8:12] == b"WEBP"

    async def test_placeholder_visible_while_uploading(
        self, make_handler, uploader, prompt, editor, png_file
    ):
        handler = make_handler(uploader, prompt)
        session = await handler.handle_paste(ClipboardEvent(files=[png_file]), editor, DOC)

        assert session.state == PasteState.UPLOADING
        assert editor.get_value() == f"# Today\n\n![uploading...]({session.token})\n"
        assert handler.pending_count == 1

        await settle()
        uploader.finish(session.document_key, "https://cdn/late.webp")
        await handler.wait_idle()
        assert handler.pending_count == 0
        assert "![Cat](https://cdn/late.webp)" in editor.get_value()
        assert "uploading..." not in editor.get_value()

    async def test_prompt_before_placeholder(self, make_handler, auto_uploader, editor, png_file):
        seen: list[str] = []

        class InspectingPrompt:
            async def ask(self):
                seen.append(editor.get_value())
                return Submitted(caption="Cat", slug="cat1")

        handler = make_handler(auto_uploader, InspectingPrompt())
        await handler.handle_paste(ClipboardEvent(files=[png_file]), editor, DOC)
        assert seen == ["# Today\n\n"]

    async def test_cancelled_prompt(
        self, make_handler, auto_uploader, cancelling_prompt, editor, notifier, png_file
    ):
        event = ClipboardEvent(files=[png_file])
        session = await make_handler(auto_uploader, cancelling_prompt).handle_paste(
            event, editor, DOC
        )
        assert session.state == PasteState.IDLE
        assert session.token is None
        assert editor.get_value() == "# Today\n\n"
        assert auto_uploader.calls == []
        assert notifier.messages == []
        assert event.default_prevented is True

    async def test_non_image_returns_none(self, make_handler, auto_uploader, prompt, editor):
        text = ClipboardFile(name="a.txt", mime_type="text/plain", data=b"hi")
        result = await make_handler(auto_uploader, prompt).handle_paste(
            ClipboardEvent(files=[text]), editor, DOC
        )
        assert result is None
        assert prompt.asked == 0

    async def test_transcode_failure_aborts(
        self, make_handler, auto_uploader, prompt, editor, notifier
    ):
        broken = ClipboardFile(name="broken.png", mime_type="image/png", data=b"not a png")
        session = await make_handler(auto_uploader, prompt).handle_paste(
            ClipboardEvent(files=[broken]), editor, DOC
        )
        assert session.state == PasteState.ABORTED
        assert prompt.asked == 0
        assert editor.get_value() == "# Today\n\n"
        assert len(notifier.messages) == 1
        assert notifier.messages[0].startswith("Image conversion failed, ")

    async def test_missing_extension_aborts(
        self, make_handler, auto_uploader, prompt, editor, notifier, png_bytes
    ):
        nameless = ClipboardFile(name="image", mime_type="image/png", data=png_bytes)
        session = await make_handler(auto_uploader, prompt).handle_paste(
            ClipboardEvent(files=[nameless]), editor, DOC
        )
        assert session.state == PasteState.ABORTED
        assert notifier.messages == ["Image extension not found"]
        assert auto_uploader.calls == []

    async def test_upload_failure_keeps_placeholder(
        self, make_handler, uploader, prompt, editor, notifier, png_file
    ):
        handler = make_handler(uploader, prompt)
        session = await handler.handle_paste(ClipboardEvent(files=[png_file]), editor, DOC)
        await settle()
        uploader.fail(session.document_key, ImageLinkTransportError("connection refused"))
        await handler.wait_idle()

        assert session.state == PasteState.FAILED
        assert isinstance(session.error, ImageLinkTransportError)
        assert editor.get_value() == f"# Today\n\n![uploading...]({session.token})\n"
        assert notifier.messages == ["Upload failed, connection refused"]

    async def test_unexpected_uploader_error_fails_session(
        self, make_handler, uploader, prompt, editor, notifier, png_file
    ):
        handler = make_handler(uploader, prompt)
        session = await handler.handle_paste(ClipboardEvent(files=[png_file]), editor, DOC)
        await settle()
        boom = RuntimeError("boom")
        uploader.fail(session.document_key, boom)
        await handler.wait_idle()

        assert session.state == PasteState.FAILED
        assert isinstance(session.error, ImageLinkUploadError)
        assert session.error.cause is boom
        assert session.error.context == {"error_type": "RuntimeError"}
        assert f"![uploading...]({session.token})" in editor.get_value()
        assert notifier.messages == ["Upload failed, Unexpected upload error: boom"]
        assert handler.pending_count == 0

    async def test_non_ascii_header_fails_with_one_notice(
        self, make_handler, prompt, editor, notifier, png_file
    ):
        seen: list[httpx.Request] = []

        def handler_fn(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"url": "https://cdn/x.webp"})

        settings = UploadConfig(headers='{"Authorization": "Bearer tokén"}')
        async with UploadClient(transport=httpx.MockTransport(handler_fn)) as client:
            handler = make_handler(client, prompt, settings=lambda: settings)
            session = await handler.handle_paste(ClipboardEvent(files=[png_file]), editor, DOC)
            await handler.wait_idle()

        assert session.state == PasteState.FAILED
        assert isinstance(session.error, ImageLinkRequestBuildError)
        assert session.error.context["reason"] == "non_ascii_header"
        assert seen == []
        assert editor.get_value() == f"# Today\n\n![uploading...]({session.token})\n"
        assert len(notifier.messages) == 1
        assert notifier.messages[0].startswith("Upload failed, ")

    async def test_oversized_image_aborts(
        self, make_handler, auto_uploader, prompt, editor, notifier, png_file, monkeypatch
    ):
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1)
        session = await make_handler(auto_uploader, prompt).handle_paste(
            ClipboardEvent(files=[png_file]), editor, DOC
        )
        assert session.state == PasteState.ABORTED
        assert editor.get_value() == "# Today\n\n"
        assert auto_uploader.calls == []
        assert len(notifier.messages) == 1
        assert notifier.messages[0].startswith("Image conversion failed, ")

    async def test_upload_records_carry_session_token(
        self, make_handler, uploader, prompt, editor, png_file, paste_log
    ):
        handler = make_handler(uploader, prompt)
        session = await handler.handle_paste(ClipboardEvent(files=[png_file]), editor, DOC)
        await settle()
        uploader.fail(session.document_key, ImageLinkTransportError("connection refused"))
        await handler.wait_idle()

        lines = [json.loads(line) for line in paste_log.getvalue().splitlines()]
        by_message = {line["message"]: line for line in lines}
        assert by_message["Placeholder inserted"]["token"] == session.token
        assert by_message["Upload failed; placeholder left in document"]["token"] == session.token

    async def test_placeholder_deleted_during_upload(
        self, make_handler, uploader, prompt, editor, notifier, png_file
    ):
        handler = make_handler(uploader, prompt)
        session = await handler.handle_paste(ClipboardEvent(files=[png_file]), editor, DOC)
        await settle()
        editor.set_value("# Rewritten\n")
        uploader.finish(session.document_key, "https://cdn/x.webp")
        await handler.wait_idle()

        assert session.state == PasteState.RESOLVED
        assert editor.get_value() == "# Rewritten\n"
        assert notifier.messages == [
            "Image uploaded but its placeholder was removed: https://cdn/x.webp"
        ]

    async def test_concurrent_sessions_resolve_independently(
        self, make_handler, uploader, prompt_factory, editor, png_file
    ):
        prompt = prompt_factory(Submitted("One", "one"), Submitted("Two", "two"))
        handler = make_handler(uploader, prompt)
        first = await handler.handle_paste(ClipboardEvent(files=[png_file]), editor, DOC)
        second = await handler.handle_paste(ClipboardEvent(files=[png_file]), editor, DOC)
        assert first.token != second.token
        assert handler.pending_count == 2

        await settle()
        uploader.finish("notes/today/two.webp", "https://cdn/two.webp")
        await settle()
        assert "![Two](https://cdn/two.webp)" in editor.get_value()
        assert f"![uploading...]({first.token})" in editor.get_value()

        uploader.finish("notes/today/one.webp", "https://cdn/one.webp")
        await handler.wait_idle()
        assert editor.get_value() == (
            "# Today\n\n![One](https://cdn/one.webp)\n\n![Two](https://cdn/two.webp)\n\n"
        )

    async def test_settings_snapshotted_per_session(
        self, make_handler, uploader, prompt, editor, png_file
    ):
        current = {"config": UploadConfig(api_url="https://old.example/up")}
        handler = make_handler(uploader, prompt, settings=lambda: current["config"])
        session = await handler.handle_paste(ClipboardEvent(files=[png_file]), editor, DOC)

        current["config"].api_url = "https://new.example/up"
        await settle()
        uploader.finish(session.document_key, "u")
        await handler.wait_idle()
        assert uploader.calls[0]["config"].api_url == "https://old.example/up"

    async def test_document_without_path(self, make_handler, auto_uploader, prompt, editor, png_file):
        handler = make_handler(auto_uploader, prompt)
        session = await handler.handle_paste(ClipboardEvent(files=[png_file]), editor, None)
        await handler.wait_idle()
        assert session.document_key == "cat1.webp"

    async def test_metrics(self, make_handler, auto_uploader, prompt, editor, png_file, metrics):
        handler = make_handler(auto_uploader, prompt, config=ImageLinkConfig(metrics=metrics))
        await handler.handle_paste(ClipboardEvent(files=[png_file]), editor, DOC)
        await handler.wait_idle()

        assert metrics.timings[0]["name"] == "imagelink.transcode_duration_ms"
        assert metrics.gauges == [
            {"name": "imagelink.pending_uploads", "value": 1, "tags": None}
        ]
        assert metrics.increments == [
            {
                "name": "imagelink.paste_sessions_total",
                "value": 1,
                "tags": {"outcome": "resolved"},
            }
        ]

    async def test_cancel_metric(
        self, make_handler, auto_uploader, cancelling_prompt, editor, png_file, metrics
    ):
        handler = make_handler(
            auto_uploader, cancelling_prompt, config=ImageLinkConfig(metrics=metrics)
        )
        await handler.handle_paste(ClipboardEvent(files=[png_file]), editor, DOC)
        assert metrics.increments[-1]["tags"] == {"outcome": "cancelled"}
