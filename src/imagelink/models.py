"""Public data models for the imagelink pipeline.

Plain dataclasses and enums shared by the template engine, the upload
client and the paste orchestrator.  None of them carry behaviour.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class PasteState(str, Enum):
    """Lifecycle states of a single paste session."""

    IDLE = "idle"
    """No work in progress.  Also the end state of a paste that was not an
    image or whose prompt was cancelled."""

    VALIDATING = "validating"
    """Checking the clipboard payload for an image file."""

    TRANSCODING = "transcoding"
    """Re-encoding the pasted image to the target format."""

    AWAITING_INPUT = "awaiting_input"
    """Waiting for the user to submit a caption and slug."""

    UPLOADING = "uploading"
    """Placeholder inserted; the upload request is in flight."""

    RESOLVED = "resolved"
    """Upload succeeded and the placeholder was handed its final markup."""

    FAILED = "failed"
    """Upload failed; the placeholder stays in the document."""

    ABORTED = "aborted"
    """Stopped before the placeholder was inserted (transcode failure or
    missing extension)."""


# ---------------------------------------------------------------------------
# Clipboard payload
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ClipboardFile:
    """A file carried by a paste event.

    Attributes
    ----------
    name:
        File name reported by the clipboard (e.g. ``"image.png"``).
    mime_type:
        Declared MIME type (e.g. ``"image/png"``).
    data:
        Raw file bytes.
    """

    name: str
    mime_type: str
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class TranscodedImage:
    """Output of the transcoder: bytes plus the name they will upload as."""

    filename: str
    mime_type: str
    data: bytes = field(repr=False)


# ---------------------------------------------------------------------------
# Template engine output
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FieldPlan:
    """Multipart field names resolved from a body template.

    Attributes
    ----------
    image_field:
        Form field that carries the image bytes.
    key_field:
        Form field that carries the content key.
    """

    image_field: str = "image"
    key_field: str = "key"


# ---------------------------------------------------------------------------
# User input
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Submitted:
    """The user confirmed the image info prompt."""

    caption: str
    slug: str


@dataclass(frozen=True)
class Cancelled:
    """The user dismissed the image info prompt."""


UserInput = Union[Submitted, Cancelled]


# ---------------------------------------------------------------------------
# Paste session
# ---------------------------------------------------------------------------

@dataclass
class PasteSession:
    """Ephemeral record of one paste event, alive until its upload settles.

    Attributes
    ----------
    source:
        The clipboard file selected for upload.
    state:
        Current :class:`PasteState`.
    image:
        The transcoded image, once transcoding succeeded.
    caption:
        Caption entered by the user.
    slug:
        Slug entered by the user.
    document_key:
        Content key sent to the endpoint.
    token:
        Placeholder token inserted into the document.
    reference:
        Reference returned by the endpoint on success.
    error:
        The error that ended the session, if any.
    """

    source: ClipboardFile | None = None
    state: PasteState = PasteState.IDLE
    image: TranscodedImage | None = None
    caption: str = ""
    slug: str = ""
    document_key: str | None = None
    token: str | None = None
    reference: str | None = None
    error: Exception | None = None
