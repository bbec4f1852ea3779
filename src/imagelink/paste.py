"""Paste orchestrator.

:class:`PasteHandler` turns one editor paste event into one
:class:`~imagelink.models.PasteSession` and walks it through::

    IDLE -> VALIDATING -> TRANSCODING -> AWAITING_INPUT -> UPLOADING
         -> RESOLVED | FAILED

Nothing touches the document until the user has submitted the image
info dialog.  The placeholder is then inserted synchronously and the
upload continues in a background task, so the user can keep editing
(or paste again) while it runs.  Every session is independent: the only
shared state is the document text, which is only ever appended to and
searched.
"""

from __future__ import annotations

import asyncio
import dataclasses
import re
import time
from collections.abc import Callable
from typing import Protocol

from imagelink.config import ImageLinkConfig, UploadConfig
from imagelink.errors import (
    ImageLinkError,
    ImageLinkMissingExtensionError,
    ImageLinkTranscodeError,
    ImageLinkUploadError,
    ImageLinkValidationError,
)
from imagelink.host import Editor, Notifier, PasteEvent
from imagelink.image import async_transcode, file_extension, select_image_file
from imagelink.models import Cancelled, PasteSession, PasteState
from imagelink.observability import NoopMetricsHook, get_logger, log_context
from imagelink.placeholder import (
    image_markup,
    insert_placeholder,
    new_token,
    resolve_placeholder,
)
from imagelink.prompt import Prompt

log = get_logger("imagelink.paste")

_DOCUMENT_SUFFIX_RE = re.compile(r"\.mdx?$")


class Uploader(Protocol):
    """The part of :class:`~imagelink.upload.UploadClient` the handler uses."""

    async def upload(
        self,
        config: UploadConfig,
        data: bytes,
        filename: str,
        key: str,
        content_type: str = ...,
    ) -> str:
        ...


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

class PasteStateMachine:
    """Enforces the valid transitions of a :class:`PasteSession`.

    Valid transitions::

        IDLE            -> VALIDATING
        VALIDATING      -> TRANSCODING | IDLE
        TRANSCODING     -> AWAITING_INPUT | ABORTED
        AWAITING_INPUT  -> UPLOADING | IDLE
        UPLOADING       -> RESOLVED | FAILED
        RESOLVED, FAILED, ABORTED -> (terminal)
    """

    VALID_TRANSITIONS: dict[PasteState, set[PasteState]] = {
        PasteState.IDLE: {PasteState.VALIDATING},
        PasteState.VALIDATING: {PasteState.TRANSCODING, PasteState.IDLE},
        PasteState.TRANSCODING: {PasteState.AWAITING_INPUT, PasteState.ABORTED},
        PasteState.AWAITING_INPUT: {PasteState.UPLOADING, PasteState.IDLE},
        PasteState.UPLOADING: {PasteState.RESOLVED, PasteState.FAILED},
        PasteState.RESOLVED: set(),
        PasteState.FAILED: set(),
        PasteState.ABORTED: set(),
    }

    def __init__(self, session: PasteSession) -> None:
        self.session = session

    @property
    def state(self) -> PasteState:
        return self.session.state

    def transition(self, new_state: PasteState) -> None:
        """Move the session to *new_state*.

        Raises
        ------
        ValueError
            If the transition is not valid from the current state.
        """
        allowed = self.VALID_TRANSITIONS.get(self.state, set())
        if new_state not in allowed:
            raise ValueError(
                f"Invalid paste state transition: {self.state.value} -> {new_state.value}. "
                f"Allowed transitions from {self.state.value}: "
                f"{{{', '.join(sorted(s.value for s in allowed))}}}"
            )
        self.session.state = new_state


# ---------------------------------------------------------------------------
# Content key
# ---------------------------------------------------------------------------

def derive_document_key(document_path: str | None, slug: str, extension: str) -> str:
    """Build the content key ``{document path without .md}/{slug}.{ext}``.

    >>> derive_document_key("notes/today.md", "cat1", "webp")
    'notes/today/cat1.webp'
    >>> derive_document_key(None, "cat1", "webp")
    'cat1.webp'
    """
    name = f"{slug}.{extension}"
    if not document_path:
        return name
    return f"{_DOCUMENT_SUFFIX_RE.sub('', document_path)}/{name}"


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class PasteHandler:
    """Runs paste sessions against an editor.

    Parameters
    ----------
    settings:
        Callable returning the current :class:`UploadConfig`.  It is read
        once per paste and snapshotted, so settings edits never affect an
        upload already in flight.
    uploader:
        Upload client (normally :class:`~imagelink.upload.UploadClient`).
    prompt:
        Source of the caption and slug.
    notifier:
        Shows failure notices.
    config:
        Runtime options (image quality, metrics).
    """

    def __init__(
        self,
        settings: Callable[[], UploadConfig],
        uploader: Uploader,
        prompt: Prompt,
        notifier: Notifier,
        config: ImageLinkConfig | None = None,
    ) -> None:
        self._settings = settings
        self._uploader = uploader
        self._prompt = prompt
        self._notifier = notifier
        self._config = config or ImageLinkConfig()
        self._metrics = (
            self._config.metrics if self._config.metrics is not None else NoopMetricsHook()
        )
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def pending_count(self) -> int:
        """Number of uploads still in flight."""
        return len(self._pending)

    async def wait_idle(self) -> None:
        """Wait until every outstanding upload has settled."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def handle_paste(
        self,
        event: PasteEvent,
        editor: Editor,
        document_path: str | None,
    ) -> PasteSession | None:
        """Handle one paste event.

        Returns once the placeholder is in the document (the upload keeps
        running in the background), or earlier if the paste is not ours,
        was cancelled, or could not be prepared.

        Returns
        -------
        PasteSession | None
            ``None`` when the event carries no image (the event is left
            for the host to handle); otherwise the session, in state
            ``UPLOADING``, ``IDLE`` (cancelled) or ``ABORTED``.
        """
        session = self.begin(event)
        if session is None:
            return None
        return await self.process(session, editor, document_path)

    def begin(self, event: PasteEvent) -> PasteSession | None:
        """Validate *event* and claim it if it carries an image.

        Synchronous so that ``prevent_default`` runs while the host is
        still dispatching the event.
        """
        session = PasteSession()
        machine = PasteStateMachine(session)
        machine.transition(PasteState.VALIDATING)

        if event.default_prevented:
            log.debug("Paste event already handled", extra={"extra_fields": {"op": "paste"}})
            machine.transition(PasteState.IDLE)
            return None
        try:
            session.source = select_image_file(event.files)
        except ImageLinkValidationError as exc:
            log.debug(
                "Paste ignored",
                extra={"extra_fields": {"op": "paste", **exc.context}},
            )
            machine.transition(PasteState.IDLE)
            return None
        event.prevent_default()
        return session

    async def process(
        self,
        session: PasteSession,
        editor: Editor,
        document_path: str | None,
    ) -> PasteSession:
        """Run a session claimed by :meth:`begin` up to the upload."""
        machine = PasteStateMachine(session)

        # -- transcode ------------------------------------------------------
        machine.transition(PasteState.TRANSCODING)
        t0 = time.monotonic()
        try:
            session.image = await async_transcode(session.source, self._config.image_quality)
            extension = file_extension(session.image.filename)
            if extension is None:
                raise ImageLinkMissingExtensionError(
                    message="Image extension not found",
                    context={"filename": session.image.filename},
                )
        except ImageLinkTranscodeError as exc:
            self._abort(machine, exc, f"Image conversion failed, {exc}")
            return session
        except ImageLinkMissingExtensionError as exc:
            self._abort(machine, exc, exc.message)
            return session
        self._metrics.timing("imagelink.transcode_duration_ms", (time.monotonic() - t0) * 1000)

        # -- user input -----------------------------------------------------
        machine.transition(PasteState.AWAITING_INPUT)
        answer = await self._prompt.ask()
        if isinstance(answer, Cancelled):
            log.debug("Image info prompt cancelled", extra={"extra_fields": {"op": "paste"}})
            machine.transition(PasteState.IDLE)
            self._metrics.increment("imagelink.paste_sessions_total", tags={"outcome": "cancelled"})
            return session
        session.caption = answer.caption
        session.slug = answer.slug
        session.document_key = derive_document_key(document_path, answer.slug, extension)

        # -- placeholder + background upload --------------------------------
        settings = dataclasses.replace(self._settings())
        machine.transition(PasteState.UPLOADING)
        session.token = new_token()
        # The upload task copies this context, so its records carry the token.
        with log_context(token=session.token):
            placeholder = insert_placeholder(editor, session.token)
            log.info(
                "Placeholder inserted",
                extra={"extra_fields": {"op": "paste", "key": session.document_key}},
            )
            task = asyncio.create_task(
                self._complete(machine, editor, settings, placeholder),
                name=f"imagelink-upload-{session.token}",
            )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        self._metrics.gauge("imagelink.pending_uploads", len(self._pending))
        return session

    # -- internals ---------------------------------------------------------

    def _abort(self, machine: PasteStateMachine, exc: ImageLinkError, notice: str) -> None:
        machine.session.error = exc
        machine.transition(PasteState.ABORTED)
        log.warning(
            "Paste aborted before upload",
            extra={"extra_fields": {"op": "paste", "code": exc.code, **exc.context}},
        )
        self._metrics.increment("imagelink.paste_sessions_total", tags={"outcome": "aborted"})
        self._notifier.notify(notice)

    def _fail(self, machine: PasteStateMachine, exc: ImageLinkError) -> None:
        machine.session.error = exc
        machine.transition(PasteState.FAILED)
        log.warning(
            "Upload failed; placeholder left in document",
            extra={"extra_fields": {"op": "paste", "code": exc.code, "error": exc.message}},
        )
        self._metrics.increment("imagelink.paste_sessions_total", tags={"outcome": "failed"})
        self._notifier.notify(f"Upload failed, {exc}")

    async def _complete(
        self,
        machine: PasteStateMachine,
        editor: Editor,
        settings: UploadConfig,
        placeholder: str,
    ) -> None:
        session = machine.session
        image = session.image
        try:
            reference = await self._uploader.upload(
                settings,
                image.data,
                image.filename,
                session.document_key,
                image.mime_type,
            )
        except ImageLinkError as exc:
            self._fail(machine, exc)
            return
        except Exception as exc:
            # Custom uploaders may raise anything; the session still settles.
            log.exception(
                "Uploader raised an unexpected error",
                extra={"extra_fields": {"op": "paste"}},
            )
            self._fail(
                machine,
                ImageLinkUploadError(
                    message=f"Unexpected upload error: {exc}",
                    context={"error_type": type(exc).__name__},
                    cause=exc,
                ),
            )
            return

        session.reference = reference
        machine.transition(PasteState.RESOLVED)
        self._metrics.increment("imagelink.paste_sessions_total", tags={"outcome": "resolved"})
        if resolve_placeholder(editor, placeholder, image_markup(session.caption, reference)):
            log.info(
                "Placeholder resolved",
                extra={"extra_fields": {"op": "paste", "reference": reference}},
            )
            return
        log.warning(
            "Placeholder not found; final markup dropped",
            extra={"extra_fields": {"op": "paste", "reference": reference}},
        )
        self._notifier.notify(f"Image uploaded but its placeholder was removed: {reference}")
