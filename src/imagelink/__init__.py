"""imagelink: paste an image, get a hosted link.

Public re-exports
-----------------

* **Plugin:** :class:`ImageLinkPlugin`
* **Pipeline:** :class:`PasteHandler`, :class:`UploadClient`
* **Configuration:** :class:`UploadConfig`, :class:`ImageLinkConfig`
* **Errors:** Every :class:`ImageLinkError` subclass and :class:`ErrorCode`
* **Models:** Session, clipboard and prompt types
* **Host helpers:** :class:`MemoryEditor`, :class:`ClipboardEvent`,
  settings stores

Usage::

    from imagelink import ClipboardEvent, ClipboardFile, ImageLinkPlugin

    plugin = ImageLinkPlugin(store, open_modal, notifier)
    await plugin.load()
    plugin.register(workspace)
"""

from __future__ import annotations

# ── Configuration ───────────────────────────────────────────────────────
from imagelink.config import DEFAULT_SETTINGS, ImageLinkConfig, UploadConfig

# ── Host helpers ────────────────────────────────────────────────────────
from imagelink.editor import MemoryEditor

# ── Errors ──────────────────────────────────────────────────────────────
from imagelink.errors import (
    ErrorCode,
    ImageLinkError,
    ImageLinkMissingExtensionError,
    ImageLinkRequestBuildError,
    ImageLinkResponseExtractionError,
    ImageLinkSettingsError,
    ImageLinkTranscodeError,
    ImageLinkTransportError,
    ImageLinkUploadError,
    ImageLinkValidationError,
)
from imagelink.host import ClipboardEvent, EditorPosition

# ── Models ──────────────────────────────────────────────────────────────
from imagelink.models import (
    Cancelled,
    ClipboardFile,
    FieldPlan,
    PasteSession,
    PasteState,
    Submitted,
    TranscodedImage,
)

# ── Pipeline ────────────────────────────────────────────────────────────
from imagelink.paste import PasteHandler, derive_document_key
from imagelink.plugin import ImageLinkPlugin
from imagelink.settings import JsonFileSettingsStore, MemorySettingsStore
from imagelink.template import extract_field, render_body
from imagelink.upload import UploadClient

# ── Public surface ──────────────────────────────────────────────────────

__all__ = [
    # Plugin + pipeline
    "ImageLinkPlugin",
    "PasteHandler",
    "UploadClient",
    "derive_document_key",
    "extract_field",
    "render_body",
    # Configuration
    "DEFAULT_SETTINGS",
    "ImageLinkConfig",
    "UploadConfig",
    # Errors
    "ErrorCode",
    "ImageLinkError",
    "ImageLinkValidationError",
    "ImageLinkMissingExtensionError",
    "ImageLinkTranscodeError",
    "ImageLinkUploadError",
    "ImageLinkRequestBuildError",
    "ImageLinkTransportError",
    "ImageLinkResponseExtractionError",
    "ImageLinkSettingsError",
    # Models
    "Cancelled",
    "ClipboardFile",
    "FieldPlan",
    "PasteSession",
    "PasteState",
    "Submitted",
    "TranscodedImage",
    # Host helpers
    "ClipboardEvent",
    "EditorPosition",
    "MemoryEditor",
    "JsonFileSettingsStore",
    "MemorySettingsStore",
]
